"""Manifest evaluator: pure matching of requirements against a blacklist."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from modwarden.engines.audit.blacklist import Blacklist
from modwarden.engines.audit.models import Requirement, Violation
from modwarden.engines.audit.version import is_below, parse_version
from modwarden.exceptions import VersionParseError

log = structlog.get_logger("modwarden.engine")

_UNPARSED = object()


def evaluate(requirements: Iterable[Requirement], blacklist: Blacklist) -> list[Violation]:
    """Return the violations for one manifest's requirements.

    Indirect requirements are ignored. A module covered by several rules yields
    one violation per rule it fails, ordered by requirement then by rule. A
    requirement version is parsed at most once, and only if some covering rule
    has a minimum; when it does not parse, those rules are skipped.
    """
    violations: list[Violation] = []
    for req in requirements:
        if req.indirect:
            continue

        have = _UNPARSED
        for rule in blacklist.rules_covering(req.module):
            if rule.min_version is None:
                violations.append(Violation(module=req.module, rule=rule))
                continue

            if have is _UNPARSED:
                have = _parse_or_log(req)
            if have is not None and is_below(have, rule.min_version):
                violations.append(Violation(module=req.module, rule=rule, version=have))
    return violations


def _parse_or_log(req: Requirement):
    try:
        return parse_version(req.version)
    except VersionParseError as exc:
        log.warning(
            "audit.version_unparseable",
            module=req.module,
            version=req.version,
            error=str(exc),
        )
        return None
