"""Exception hierarchy for the logistics service.

Transient errors may succeed on retry (``core.retry`` retries them by
default) and reach clients as 503. Permanent errors describe bad input or
state; routes map ``ValidationError`` to 400 and ``NotFoundError`` to 404.
"""

from typing import Any


class LogisticsError(Exception):
    """Base for every error raised by the service."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class TransientError(LogisticsError):
    pass


class NetworkError(TransientError):
    """Notification gateway or Redis unreachable, or a request timed out."""


class ServiceUnavailableError(TransientError):
    """An external service answered with a 5xx status."""


class PersistenceError(TransientError):
    """SQLite operation failed, typically a locked database."""


class PermanentError(LogisticsError):
    pass


class ValidationError(PermanentError):
    """Missing or malformed request fields, unknown status, empty topic."""


class NotFoundError(PermanentError):
    """Unknown waybill, tracking or place name."""


class StateError(PermanentError):
    """Operation not allowed in the current state, e.g. reopening a stream."""
