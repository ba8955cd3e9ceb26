"""structlog setup shared by the API server and the CLI scripts."""

from __future__ import annotations

import logging
import sys

import structlog

from app.core.config import get_settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route structlog output to stdout as JSON (production) or console lines (dev)."""
    settings = get_settings()
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    numeric_level = getattr(logging, level, logging.INFO)
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
    )

    # Keep stdlib loggers (uvicorn, sqlalchemy) at the same threshold.
    logging.basicConfig(stream=sys.stdout, level=numeric_level)
