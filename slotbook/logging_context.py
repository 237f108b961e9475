"""Request ID logging context for tracing availability calls across modules.

Provides a request_id-aware logger that attaches a correlation ID to every
log message, so one slot computation or date scan can be followed through
the engine, the constraint sources and the store even while many dates are
evaluated concurrently.

Usage:
    from slotbook.logging_context import get_request_logger, set_request_id

    set_request_id("REQ-abc123")
    logger = get_request_logger(__name__)
    logger.info("Scanning dates")  # record.request_id == "REQ-abc123"
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_DEFAULT_REQUEST_ID = "NO_REQUEST_ID"
_request_id: ContextVar[str] = ContextVar("request_id", default=_DEFAULT_REQUEST_ID)


def set_request_id(request_id: str) -> None:
    """Set the correlation ID for the current async context."""
    _request_id.set(request_id)


def get_request_id() -> str:
    """Retrieve the current correlation ID."""
    return _request_id.get()


def generate_request_id() -> str:
    return f"REQ-{uuid.uuid4().hex[:8]}"


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


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Install a correlation ID for the duration of one inbound call.

    An ID already set by an outer caller is kept, so nested engine calls
    (a date scan calling the slot generator) log under the same ID.
    """
    current = _request_id.get()
    if current != _DEFAULT_REQUEST_ID:
        yield current
        return
    token = _request_id.set(request_id or generate_request_id())
    try:
        yield _request_id.get()
    finally:
        _request_id.reset(token)
