"""modwarden: audit an organization's Go modules for banished dependencies."""

__version__ = "0.1.0"
