"""Per-task logging context.

Fields live in a ContextVar, so they follow the current asyncio task and are
copied into ``asyncio.to_thread`` workers. Nested ``log_context`` blocks add
to the enclosing fields and restore them on exit.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_fields: ContextVar[dict[str, Any]] = ContextVar("log_fields", default={})


def current_fields() -> dict[str, Any]:
    return dict(_fields.get())


class ContextFilter(logging.Filter):
    """Copies the current context fields onto each record without overriding ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _fields.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    token = _fields.set({**_fields.get(), **fields})
    try:
        yield
    finally:
        _fields.reset(token)


@contextmanager
def log_waybill_context(waybill: str, **fields: Any) -> Iterator[None]:
    """Tag records with a waybill; it doubles as the correlation ID unless one is given."""
    fields.setdefault("correlation_id", waybill)
    with log_context(waybill=waybill, **fields):
        yield
