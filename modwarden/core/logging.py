"""Structured logging for the audit: structlog rendered through stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os
import sys

import structlog

from modwarden.exceptions import ConfigError

LEVEL_ENV_VAR = "MODWARDEN_LOG_LEVEL"
FORMAT_ENV_VAR = "MODWARDEN_LOG_FORMAT"

# Third-party loggers that narrate every request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str | None = None) -> None:
    """Route structlog and stdlib records to stderr.

    Reads from environment variables:
        MODWARDEN_LOG_LEVEL  -- log level (default: WARNING)
        MODWARDEN_LOG_FORMAT -- console | json (default: console)

    An explicit *level* wins over the environment. stdout is left to the audit
    report. Raises :class:`ConfigError` for an unknown level or format.
    """
    log_level = (level or os.environ.get(LEVEL_ENV_VAR) or "WARNING").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"unknown log level {log_level!r} in {LEVEL_ENV_VAR}")

    log_format = (os.environ.get(FORMAT_ENV_VAR) or "console").lower()
    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    elif log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        raise ConfigError(f"unknown log format {log_format!r} in {FORMAT_ENV_VAR}")

    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]

    # Loggers stay uncached: setup can run more than once per process.
    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        }
    )
