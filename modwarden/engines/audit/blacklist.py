"""Blacklist parsing and lookup."""

from __future__ import annotations

from collections.abc import Iterable

from modwarden.engines.audit.models import BlacklistRule
from modwarden.engines.audit.trie import SegmentTrie
from modwarden.engines.audit.version import parse_version
from modwarden.exceptions import BlacklistError, ConfigError, VersionParseError


def parse_rule(entry: str) -> BlacklistRule:
    """Parse ``module`` or ``module@minVersion``.

    Raises :class:`BlacklistError` for a malformed version and
    :class:`ConfigError` for an entry without a module path.
    """
    module, sep, raw_version = entry.strip().partition("@")
    module = module.strip()
    if not module:
        raise ConfigError(f"invalid blacklist entry {entry!r}: missing module path")
    if not sep:
        return BlacklistRule(prefix=module, raw=entry.strip())
    try:
        min_version = parse_version(raw_version)
    except VersionParseError as exc:
        raise BlacklistError(entry, str(exc)) from exc
    return BlacklistRule(prefix=module, min_version=min_version, raw=entry.strip())


def parse_blacklist(values: str | Iterable[str]) -> Blacklist:
    """Parse one or more comma-separated lists of rules into a :class:`Blacklist`.

    Blank items (``"a,,b"``, trailing commas) are ignored.
    """
    values = [values] if isinstance(values, str) else list(values)
    rules = [
        parse_rule(item)
        for value in values
        for item in value.split(",")
        if item.strip()
    ]
    if not rules:
        raise ConfigError("no modules given to audit for")
    return Blacklist(rules)


class Blacklist:
    """Ordered, read-only set of rules indexed by a :class:`SegmentTrie`.

    Built once before a scan and then shared by every pipeline stage.
    """

    def __init__(self, rules: Iterable[BlacklistRule]) -> None:
        self._rules: tuple[BlacklistRule, ...] = tuple(rules)
        self._trie = SegmentTrie()
        for index, rule in enumerate(self._rules):
            self._trie.add(rule.prefix, index)

    @property
    def rules(self) -> tuple[BlacklistRule, ...]:
        return self._rules

    def rules_covering(self, module: str) -> list[BlacklistRule]:
        """Every rule whose prefix covers *module*, in rule order."""
        return [self._rules[i] for i in sorted(self._trie.covering(module))]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def __repr__(self) -> str:
        return f"Blacklist({', '.join(str(r) for r in self._rules)})"
