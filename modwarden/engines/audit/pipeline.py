"""Audit pipeline — enumerate repositories, locate manifests, check them, report.

Stages run as asyncio tasks joined by bounded queues, so a slow stage holds back
the ones before it. Each stage hands a single end-of-stream marker downstream
once its input is exhausted.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

# Ensure parsers are registered before any scan runs.
import modwarden.engines.audit.parsers  # noqa: F401
from modwarden.engines.audit.blacklist import Blacklist
from modwarden.engines.audit.evaluator import evaluate
from modwarden.engines.audit.github_client import GitHubClient, RateLimitError
from modwarden.engines.audit.models import (
    ManifestEntry,
    ManifestLocation,
    Repository,
    ScanResult,
)
from modwarden.engines.audit.parsers.registry import is_manifest, parser_for
from modwarden.engines.audit.report import AuditTotals, ReportSink, aggregate
from modwarden.exceptions import EnumerationError, ManifestParseError, ScanCancelledError

log = structlog.get_logger("modwarden.engine")

_DONE: Any = object()  # end-of-stream marker

# Errors that mean "this one request did not work out"
_FETCH_ERRORS = (httpx.HTTPError, RateLimitError, ValueError)


@dataclass
class PipelineConfig:
    org: str
    recursive: bool = True
    queue_size: int = 10
    workers: int = 1  # per stage, for the locate and check stages
    max_page_attempts: int = 5
    retry_base_delay: float = 1.0  # seconds


# ── enumerate ─────────────────────────────────────────────────────────────


async def fetch_repo_page(
    client: GitHubClient,
    org: str,
    url: str | None,
    *,
    max_attempts: int,
    base_delay: float,
) -> tuple[list[Repository], str | None]:
    """Fetch one listing page, retrying the same page with exponential backoff.

    Raises :class:`EnumerationError` after *max_attempts* failures.
    """
    last_exc: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await client.list_org_repos_page(org, url)
        except _FETCH_ERRORS as exc:
            last_exc = exc
            log.error(
                "audit.list_page_failed",
                org=org,
                page_url=url,
                attempt=attempt,
                max_attempts=max_attempts,
                error=str(exc),
            )
            if attempt == max_attempts:
                break
            if isinstance(exc, RateLimitError):
                delay = float(exc.retry_after)
            else:
                delay = base_delay * (2 ** (attempt - 1))
            await asyncio.sleep(delay)

    raise EnumerationError(org, max_attempts, last_exc)  # type: ignore[arg-type]


async def enumerate_repositories(
    client: GitHubClient,
    org: str,
    out: asyncio.Queue,
    *,
    max_page_attempts: int = 5,
    retry_base_delay: float = 1.0,
) -> None:
    """Emit every non-archived, non-disabled repository of *org*, then the end marker."""
    url: str | None = None
    while True:
        repos, next_url = await fetch_repo_page(
            client, org, url, max_attempts=max_page_attempts, base_delay=retry_base_delay
        )
        for repo in repos:
            if not repo.auditable:
                log.debug(
                    "audit.repo_skipped",
                    repo=repo.full_name,
                    archived=repo.archived,
                    disabled=repo.disabled,
                )
                continue
            await out.put(repo)

        if next_url is None:
            break
        url = next_url

    await out.put(_DONE)


# ── locate ────────────────────────────────────────────────────────────────


async def find_manifests(
    client: GitHubClient,
    repo: Repository,
    *,
    recursive: bool = True,
) -> ManifestEntry | None:
    """Return a :class:`ManifestEntry` for *repo*, or None if it has no manifests.

    A tree fetch failure is logged and the repository skipped.
    """
    try:
        tree = await client.get_tree(
            repo.owner, repo.name, repo.default_branch, recursive=recursive
        )
    except httpx.HTTPStatusError as exc:
        # 409 is how GitHub answers for a repository without commits
        if exc.response.status_code == 409:
            log.info("audit.repo_empty", repo=repo.full_name)
        else:
            log.error("audit.tree_fetch_failed", repo=repo.full_name, error=str(exc))
        return None
    except _FETCH_ERRORS as exc:
        log.error("audit.tree_fetch_failed", repo=repo.full_name, error=str(exc))
        return None

    manifests = [
        ManifestLocation(path=item["path"], url=item["url"])
        for item in tree
        if item.get("type", "blob") == "blob" and is_manifest(item.get("path", ""))
    ]
    if not manifests:
        return None
    return ManifestEntry(repository=repo, manifests=manifests)


# ── check ─────────────────────────────────────────────────────────────────


async def check_manifest(
    client: GitHubClient,
    repo: Repository,
    location: ManifestLocation,
    blacklist: Blacklist,
) -> ScanResult | None:
    """Fetch, parse and evaluate one manifest. Returns None if it was skipped."""
    parser = parser_for(location.path)
    if parser is None:
        log.warning("audit.no_parser", repo=repo.full_name, path=location.path)
        return None

    try:
        content = await client.get_blob(location.url)
    except _FETCH_ERRORS as exc:
        log.error(
            "audit.manifest_fetch_failed",
            repo=repo.full_name,
            path=location.path,
            error=str(exc),
        )
        return None

    try:
        requirements = parser.parse(content)
    except ManifestParseError as exc:
        log.error(
            "audit.manifest_parse_failed",
            repo=repo.full_name,
            path=location.path,
            error=str(exc),
        )
        return None

    return ScanResult(
        repository=repo.full_name,
        manifest_path=location.path,
        violations=evaluate(requirements, blacklist),
    )


async def check_entry(
    client: GitHubClient,
    entry: ManifestEntry,
    blacklist: Blacklist,
) -> list[ScanResult]:
    """Check every manifest of *entry* in order, skipping the ones that fail."""
    results: list[ScanResult] = []
    for location in entry.manifests:
        result = await check_manifest(client, entry.repository, location, blacklist)
        if result is not None:
            results.append(result)
    return results


# ── stage plumbing ────────────────────────────────────────────────────────


async def run_stage(
    name: str,
    inbox: asyncio.Queue,
    outbox: asyncio.Queue,
    handle: Callable[[Any], Awaitable[list[Any]]],
    *,
    workers: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> None:
    """Feed every item of *inbox* to *handle* and put what it returns on *outbox*.

    With several workers, items are processed concurrently and their outputs
    may be interleaved. The end marker is forwarded once all workers stop.
    """

    async def _worker(worker_id: int) -> None:
        while True:
            item = await inbox.get()
            if item is _DONE:
                # Leave the marker for sibling workers
                await inbox.put(_DONE)
                return
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelledError(f"{name} stage cancelled")
            for produced in await handle(item):
                await outbox.put(produced)

    await asyncio.gather(*(_worker(i) for i in range(max(workers, 1))))
    log.debug("audit.stage_done", stage=name)
    await outbox.put(_DONE)


async def drain(queue: asyncio.Queue) -> AsyncIterator[Any]:
    """Yield items from *queue* until the end marker."""
    while True:
        item = await queue.get()
        if item is _DONE:
            return
        yield item


# ── orchestration ─────────────────────────────────────────────────────────


class AuditPipeline:
    """Wires the three stages and the report aggregator together for one org.

    The blacklist is read-only and shared by every stage. :meth:`cancel`
    stops a running scan; :meth:`run` then raises :class:`ScanCancelledError`.
    """

    def __init__(
        self,
        client: GitHubClient,
        blacklist: Blacklist,
        config: PipelineConfig,
    ) -> None:
        self._client = client
        self._blacklist = blacklist
        self._config = config
        self._cancel_event = asyncio.Event()

    @property
    def cancel_event(self) -> asyncio.Event:
        return self._cancel_event

    def cancel(self) -> None:
        self._cancel_event.set()

    async def _locate(self, repo: Repository) -> list[ManifestEntry]:
        entry = await find_manifests(self._client, repo, recursive=self._config.recursive)
        return [entry] if entry is not None else []

    async def _check(self, entry: ManifestEntry) -> list[ScanResult]:
        return await check_entry(self._client, entry, self._blacklist)

    async def run(self, sink: ReportSink) -> AuditTotals:
        """Scan the whole organization, reporting each result to *sink* as it arrives."""
        cfg = self._config
        repos: asyncio.Queue = asyncio.Queue(maxsize=cfg.queue_size)
        entries: asyncio.Queue = asyncio.Queue(maxsize=cfg.queue_size)
        results: asyncio.Queue = asyncio.Queue(maxsize=cfg.queue_size)

        log.info("audit.started", org=cfg.org, rules=len(self._blacklist))

        stages = [
            asyncio.create_task(
                enumerate_repositories(
                    self._client,
                    cfg.org,
                    repos,
                    max_page_attempts=cfg.max_page_attempts,
                    retry_base_delay=cfg.retry_base_delay,
                ),
                name="audit-enumerate",
            ),
            asyncio.create_task(
                run_stage(
                    "locate",
                    repos,
                    entries,
                    self._locate,
                    workers=cfg.workers,
                    cancel_event=self._cancel_event,
                ),
                name="audit-locate",
            ),
            asyncio.create_task(
                run_stage(
                    "check",
                    entries,
                    results,
                    self._check,
                    workers=cfg.workers,
                    cancel_event=self._cancel_event,
                ),
                name="audit-check",
            ),
        ]
        report = asyncio.create_task(aggregate(drain(results), sink), name="audit-report")
        stop = asyncio.create_task(self._cancel_event.wait(), name="audit-cancel")

        pending: set[asyncio.Task] = {*stages, report}
        try:
            while not report.done():
                done, pending = await asyncio.wait(
                    pending | {stop}, return_when=asyncio.FIRST_COMPLETED
                )
                pending.discard(stop)
                if stop in done:
                    log.warning("audit.cancelled", org=cfg.org)
                    raise ScanCancelledError(f"scan of {cfg.org!r} cancelled")
                for task in done:
                    exc = task.exception()
                    if exc is not None:
                        raise exc
            totals = report.result()
        finally:
            leftover = [t for t in (*stages, report, stop) if not t.done()]
            for task in leftover:
                task.cancel()
            await asyncio.gather(*leftover, return_exceptions=True)

        log.info(
            "audit.finished",
            org=cfg.org,
            manifests=totals.manifests,
            failed_manifests=totals.failed_manifests,
            violations=totals.total_violations,
        )
        return totals
