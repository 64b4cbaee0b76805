"""Data models for the dependency audit engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from semver import Version


@dataclass(frozen=True)
class Repository:
    """A repository as listed for an organization."""

    full_name: str
    name: str
    default_branch: str
    archived: bool = False
    disabled: bool = False

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def auditable(self) -> bool:
        return not (self.archived or self.disabled)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Repository:
        """Build from one item of ``GET /orgs/{org}/repos``."""
        return cls(
            full_name=data["full_name"],
            name=data["name"],
            default_branch=data.get("default_branch") or "main",
            archived=bool(data.get("archived", False)),
            disabled=bool(data.get("disabled", False)),
        )


@dataclass(frozen=True)
class ManifestLocation:
    """One manifest file found in a repository tree."""

    path: str
    url: str  # blob API URL


@dataclass
class ManifestEntry:
    """A repository and every manifest file located in its tree."""

    repository: Repository
    manifests: list[ManifestLocation] = field(default_factory=list)


@dataclass(frozen=True)
class Requirement:
    """A single ``require`` line from a manifest."""

    module: str
    version: str
    indirect: bool = False


@dataclass(frozen=True)
class BlacklistRule:
    """A banished module path prefix, optionally with a minimum allowed version.

    ``min_version`` of None bans every version of every module under ``prefix``.
    ``raw`` keeps the entry as given on the command line and does not take part
    in equality.
    """

    prefix: str
    min_version: Version | None = None
    raw: str = field(default="", compare=False)

    def __str__(self) -> str:
        if self.min_version is None:
            return self.prefix
        return f"{self.prefix}@{self.min_version}"


@dataclass(frozen=True)
class Violation:
    """A direct requirement that a blacklist rule rejects."""

    module: str
    rule: BlacklistRule
    version: Version | None = None  # None when the rule bans every version

    @property
    def min_version(self) -> Version | None:
        return self.rule.min_version


@dataclass
class ScanResult:
    """Outcome of auditing one manifest file."""

    repository: str  # full name
    manifest_path: str
    violations: list[Violation] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations
