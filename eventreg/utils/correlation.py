"""Correlation ID utilities for structured logging.

Holds a per-request correlation identifier in a ContextVar so log records
emitted while serving a request, including those from cache producers
started on its behalf, can carry the same ``req_id``.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(request_id: str) -> None:
    """Set the current request correlation id in a context variable."""

    _request_id_var.set(request_id)


def get_request_id() -> str:
    """Return the current request correlation id, or empty string."""

    return _request_id_var.get()


class RequestIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Attach the current correlation id to every record as ``req_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "req_id"):
            record.req_id = get_request_id()
        return True
