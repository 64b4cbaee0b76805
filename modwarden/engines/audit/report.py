"""Report aggregation and output sinks."""

from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass, field
from typing import IO, Protocol, runtime_checkable

import click

from modwarden.engines.audit.models import ScanResult, Violation


@runtime_checkable
class ReportSink(Protocol):
    """Where audit results are written."""

    def passed(self, result: ScanResult) -> None: ...

    def failed(self, result: ScanResult) -> None: ...

    def issue(self, violation: Violation) -> None: ...

    def summary(self, failed_manifests: int, total_violations: int) -> None: ...


class ConsoleSink:
    """Colored terminal report: green PASS lines, red FAIL lines and details."""

    def __init__(self, file: IO[str] | None = None, color: bool | None = None) -> None:
        self._file = file
        self._color = color

    def _echo(self, message: str, fg: str) -> None:
        click.secho(message, fg=fg, file=self._file, color=self._color)

    def passed(self, result: ScanResult) -> None:
        self._echo(f"PASS {result.repository} {result.manifest_path}", "green")

    def failed(self, result: ScanResult) -> None:
        self._echo(f"FAIL {result.repository} {result.manifest_path}", "red")

    def issue(self, violation: Violation) -> None:
        if violation.min_version is None:
            self._echo(f"  MOD IMPORTS {violation.module}", "red")
            return
        self._echo(
            f"  mod imports {violation.module}@{violation.version}"
            f" (min version is {violation.min_version})",
            "red",
        )

    def summary(self, failed_manifests: int, total_violations: int) -> None:
        self._echo("", "red")
        self._echo(
            f"== {failed_manifests} repos had {total_violations} banished imports ==", "red"
        )


@dataclass
class RecordingSink:
    """Keeps every report event in memory, in arrival order."""

    events: list[tuple[str, object]] = field(default_factory=list)

    def passed(self, result: ScanResult) -> None:
        self.events.append(("pass", result))

    def failed(self, result: ScanResult) -> None:
        self.events.append(("fail", result))

    def issue(self, violation: Violation) -> None:
        self.events.append(("issue", violation))

    def summary(self, failed_manifests: int, total_violations: int) -> None:
        self.events.append(("summary", (failed_manifests, total_violations)))

    def results(self) -> list[ScanResult]:
        return [obj for kind, obj in self.events if kind in ("pass", "fail")]  # type: ignore[misc]


@dataclass
class AuditTotals:
    """Run-wide counters accumulated by :func:`aggregate`."""

    manifests: int = 0
    failed_manifests: int = 0
    total_violations: int = 0

    @property
    def ok(self) -> bool:
        return self.failed_manifests == 0


def record(result: ScanResult, sink: ReportSink, totals: AuditTotals) -> None:
    """Write one result to *sink* and add it to *totals*."""
    totals.manifests += 1
    if result.passed:
        sink.passed(result)
        return

    totals.failed_manifests += 1
    totals.total_violations += len(result.violations)
    sink.failed(result)
    for violation in result.violations:
        sink.issue(violation)


async def aggregate(results: AsyncIterable[ScanResult], sink: ReportSink) -> AuditTotals:
    """Consume *results* in arrival order and report each one.

    The summary line is only written when at least one manifest failed.
    """
    totals = AuditTotals()
    async for result in results:
        record(result, sink, totals)
    if not totals.ok:
        sink.summary(totals.failed_manifests, totals.total_violations)
    return totals
