"""Custom exceptions for modwarden."""


class AuditError(Exception):
    """Base exception for all audit errors."""


class ConfigError(AuditError):
    """Raised when required configuration is missing or invalid."""


class BlacklistError(ConfigError):
    """Raised when a blacklist entry carries a malformed minimum version."""

    def __init__(self, entry: str, reason: str):
        self.entry = entry
        self.reason = reason
        super().__init__(f"invalid blacklist entry {entry!r}: {reason}")


class VersionParseError(AuditError):
    """Raised when a version string is not a parseable semantic version."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"malformed version: {text!r}")


class ManifestParseError(AuditError):
    """Raised when manifest content cannot be read at all."""


class EnumerationError(AuditError):
    """Raised when a repository listing page keeps failing."""

    def __init__(self, org: str, attempts: int, last_error: Exception):
        self.org = org
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"listing repositories for {org!r} failed {attempts} times: {last_error}"
        )


class ScanCancelledError(AuditError):
    """Raised when a scan is stopped before its input is exhausted."""
