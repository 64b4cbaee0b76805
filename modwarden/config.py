"""Audit configuration assembled from CLI flags and the environment."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass

from modwarden.engines.audit.blacklist import Blacklist, parse_blacklist
from modwarden.engines.audit.pipeline import PipelineConfig
from modwarden.exceptions import ConfigError

TOKEN_ENV_VAR = "GITHUB_TOKEN"


@dataclass(frozen=True)
class AuditConfig:
    """Validated settings for one audit run."""

    org: str
    token: str
    blacklist: Blacklist
    recursive: bool = True
    workers: int = 1
    queue_size: int = 10
    max_page_attempts: int = 5

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            org=self.org,
            recursive=self.recursive,
            queue_size=self.queue_size,
            workers=self.workers,
            max_page_attempts=self.max_page_attempts,
        )


def resolve_token(flag_value: str | None) -> str | None:
    """Token from the flag, falling back to ``$GITHUB_TOKEN``."""
    return flag_value or os.environ.get(TOKEN_ENV_VAR) or None


def load_config(
    *,
    org: str | None,
    modules: Sequence[str],
    token: str | None,
    recursive: bool = True,
    workers: int = 1,
    queue_size: int = 10,
    max_page_attempts: int = 5,
) -> AuditConfig:
    """Validate raw settings.

    Raises :class:`ConfigError` for missing values, and its subclass
    :class:`~modwarden.exceptions.BlacklistError` for a malformed minimum version.
    """
    resolved_token = resolve_token(token)
    if not resolved_token:
        raise ConfigError(f"--github-token required and not provided (or set {TOKEN_ENV_VAR})")
    if not org:
        raise ConfigError("--org required and not provided")
    if not any(m.strip() for m in modules):
        raise ConfigError("--modules required and not provided")
    for name, value in (
        ("--workers", workers),
        ("--queue-size", queue_size),
        ("--max-page-attempts", max_page_attempts),
    ):
        if value < 1:
            raise ConfigError(f"{name} must be at least 1, got {value}")

    return AuditConfig(
        org=org,
        token=resolved_token,
        blacklist=parse_blacklist(modules),
        recursive=recursive,
        workers=workers,
        queue_size=queue_size,
        max_page_attempts=max_page_attempts,
    )
