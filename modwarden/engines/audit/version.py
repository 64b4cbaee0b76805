"""Version threshold evaluation.

Module versions follow semantic versioning. A leading ``v`` is accepted, and so
are Go pseudo-versions such as ``v0.0.0-20210101120000-abcdef123456``, which are
ordinary pre-releases. Build metadata (``+incompatible``) is kept for display
but ignored when ordering.
"""

from __future__ import annotations

import semver

from modwarden.exceptions import VersionParseError


def parse_version(text: str) -> semver.Version:
    """Parse a module version such as ``v1.4.2``, ``1.0.0-rc.1`` or ``v2.0.0+incompatible``.

    Missing minor and patch components default to zero, so ``v2`` is ``2.0.0``.
    Raises :class:`VersionParseError` when *text* is not a version.
    """
    try:
        return semver.Version.parse(
            text.strip().removeprefix("v"), optional_minor_and_patch=True
        )
    except (TypeError, ValueError) as exc:
        raise VersionParseError(text) from exc


def is_below(have: semver.Version, minimum: semver.Version) -> bool:
    """Return True if *have* has strictly lower precedence than *minimum*."""
    return have.compare(minimum) < 0
