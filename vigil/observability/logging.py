"""Structured logging configuration using structlog.

Events are snake_case names with key/value context, e.g.::

    _log.info("alert_fired", alert_id=12, type="cpu", severity="warning")
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog


def setup_logging(level: str = "info", stream: TextIO | None = None) -> None:
    """Configure structlog for JSON lines and route stdlib logging (uvicorn) to the same sink.

    Args:
        level:  Minimum level name ("debug", "info", ...).
        stream: Output stream. Defaults to stderr.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    out = stream or sys.stderr

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(stream=out, level=log_level, format="%(message)s", force=True)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
