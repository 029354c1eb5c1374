# logging_config.py
# Console rendering by default; LOG_FORMAT=json gives one JSON object per line.

from __future__ import annotations

import logging

import structlog

from avm_calendar import config


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog processors and the stdlib root level."""
    level = (level or config.LOG_LEVEL).upper()
    fmt = (fmt or config.LOG_FORMAT).lower()

    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))

    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if fmt == "json":
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
