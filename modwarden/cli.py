"""CLI entry point: modwarden.

Usage:
    modwarden --org my-org --modules github.com/pkg/errors
    modwarden --org my-org --modules github.com/old/lib@1.4.0,github.com/bad/thing
    modwarden --org my-org --modules a/b --modules c/d@2.0.0 --no-recurse
"""

from __future__ import annotations

import asyncio
import contextlib
import signal

import click
import structlog
from click.core import ParameterSource

from modwarden.config import AuditConfig, load_config
from modwarden.core.logging import setup_logging
from modwarden.engines.audit.github_client import GitHubClient
from modwarden.engines.audit.pipeline import AuditPipeline
from modwarden.engines.audit.report import AuditTotals, ConsoleSink, ReportSink
from modwarden.exceptions import BlacklistError, ConfigError, EnumerationError, ScanCancelledError

log = structlog.get_logger("modwarden.cli")

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_VIOLATIONS = 2
EXIT_BAD_VERSION = 3
EXIT_INTERRUPTED = 130


async def run_audit(
    cfg: AuditConfig,
    sink: ReportSink,
    client: GitHubClient | None = None,
) -> AuditTotals:
    """Run one audit; SIGINT/SIGTERM stop it through the pipeline's cancel event."""
    owns_client = client is None
    if client is None:
        client = GitHubClient(cfg.token)
    pipeline = AuditPipeline(client, cfg.blacklist, cfg.pipeline_config())

    loop = asyncio.get_running_loop()
    handled: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows or outside the main thread
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.add_signal_handler(sig, pipeline.cancel)
            handled.append(sig)
    try:
        return await pipeline.run(sink)
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
        if owns_client:
            await client.close()


def _no_options_given(ctx: click.Context) -> bool:
    return not ctx.args and all(
        ctx.get_parameter_source(name) == ParameterSource.DEFAULT for name in ctx.params
    )


@click.command(context_settings={"allow_extra_args": True})
@click.option("--org", default=None, help="Organisation to scan (required)")
@click.option(
    "--modules",
    multiple=True,
    help="Comma-separated list of module[@minVersion] to check for (required, repeatable)",
)
@click.option(
    "--recurse/--no-recurse",
    default=True,
    show_default=True,
    help="Search repo trees recursively",
)
@click.option(
    "--github-token",
    default=None,
    help="Token to use for GitHub access (required, alternative to GITHUB_TOKEN env variable)",
)
@click.option("--workers", default=1, show_default=True, help="Workers per locate/check stage")
@click.option("--queue-size", default=10, show_default=True, help="Capacity of each stage queue")
@click.option(
    "--max-page-attempts",
    default=5,
    show_default=True,
    help="Attempts per repository listing page before giving up",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.pass_context
def main(
    ctx: click.Context,
    org: str | None,
    modules: tuple[str, ...],
    recurse: bool,
    github_token: str | None,
    workers: int,
    queue_size: int,
    max_page_attempts: int,
    verbose: bool,
) -> None:
    """Audit every repository of a GitHub organisation for banished Go modules."""
    if _no_options_given(ctx):
        click.echo(ctx.get_help())
        ctx.exit(EXIT_OK)

    if ctx.args:
        click.echo(f"unexpected arguments - {' '.join(ctx.args)}", err=True)
        click.echo(ctx.get_usage(), err=True)
        ctx.exit(EXIT_CONFIG)

    try:
        setup_logging("DEBUG" if verbose else None)
        cfg = load_config(
            org=org,
            modules=modules,
            token=github_token,
            recursive=recurse,
            workers=workers,
            queue_size=queue_size,
            max_page_attempts=max_page_attempts,
        )
    except BlacklistError as exc:
        click.echo(str(exc), err=True)
        ctx.exit(EXIT_BAD_VERSION)
    except ConfigError as exc:
        click.echo(str(exc), err=True)
        click.echo(ctx.get_usage(), err=True)
        ctx.exit(EXIT_CONFIG)

    try:
        totals = asyncio.run(run_audit(cfg, ConsoleSink()))
    except EnumerationError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(EXIT_CONFIG)
    except (ScanCancelledError, KeyboardInterrupt):
        click.echo("scan interrupted", err=True)
        ctx.exit(EXIT_INTERRUPTED)

    if not totals.ok:
        ctx.exit(EXIT_VIOLATIONS)


if __name__ == "__main__":
    main()
