"""Structured logging configuration using ``structlog``.

Call :func:`setup_logging` once at application startup to configure
both ``structlog`` and the standard-library ``logging`` module.  The
builder, renderers and scanner accept an explicit logger; when none is
given they fall back to :func:`get_logger`.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Minimum severity level (e.g. ``"DEBUG"``, ``"INFO"``).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # Standard-library root logger
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **context: Any) -> Any:
    """Return a structlog logger bound to *context*.

    Args:
        name: Logger name, normally the caller's ``__name__``.
        **context: Key/value pairs attached to every event.
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
