"""Manifest parsers — auto-registered on import."""

from modwarden.engines.audit.parsers import go_mod  # noqa: F401
