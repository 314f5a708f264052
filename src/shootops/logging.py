"""
structlog setup for shootops.

Log lines are JSON by default; ``SHOOTOPS_LOG_FORMAT=console`` switches to the
human-readable renderer for local runs. Operations and flows log through
loggers carrying ``shoot``, ``namespace`` and ``flow`` fields, built with
``bind_context``.
"""

import logging
from typing import Any

import structlog

from shootops.config.settings import get_settings

LOG_FORMATS = ("json", "console")


def _renderer(log_format: str) -> Any:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(level: int | str | None = None, *, log_format: str | None = None) -> None:
    """Configure structlog on top of stdlib logging; unset values come from Settings."""
    settings = get_settings()
    level = settings.log_level if level is None else level
    log_format = settings.log_format if log_format is None else log_format
    if log_format not in LOG_FORMATS:
        raise ValueError(f"unknown log format {log_format!r}, expected one of {LOG_FORMATS}")
    if isinstance(level, str):
        level = level.upper()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def bind_context(base: Any = None, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Return `base` (or a fresh logger) with the given fields bound."""
    logger = base if base is not None else structlog.get_logger()
    return logger.bind(**kwargs)
