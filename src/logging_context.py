"""Correlation ID logging context for tracing suggestion requests across modules.

Provides a request_id-aware logger that attaches a correlation ID to every
log message, so the fan-out of one suggestion request (per-technician
tasks, travel lookups, ranking) can be followed in the logs.

Usage:
    from src.logging_context import get_request_logger, set_request_id

    set_request_id("SUG-abc123")
    logger = get_request_logger(__name__)
    logger.info("Ranking candidates")  # record.request_id == "SUG-abc123"
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="NO_REQUEST_ID")


def new_request_id() -> str:
    """Generate a short correlation ID for a suggestion request."""
    return f"SUG-{uuid.uuid4().hex[:8]}"


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the correlation ID for the current async context and return it."""
    value = request_id or new_request_id()
    _request_id.set(value)
    return value


def get_request_id() -> str:
    """Retrieve the current correlation ID."""
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger with the RequestIdFilter attached.

    The filter adds ``request_id`` to each record so formatters can
    include ``%(request_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
