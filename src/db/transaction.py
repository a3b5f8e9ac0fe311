"""Explicit transaction boundaries for service operations."""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from core.exceptions import PersistenceError


@contextmanager
def transaction(session: Session) -> Generator[Session, None, None]:
    """Commit on success, roll back on any exception.

    SQLite operational failures (a locked database, a full disk) surface as
    ``PersistenceError`` so callers can treat them as transient.

    Example:
        with transaction(session):
            event_repo.create(shipment.id, "IN_TRANSIT", "Morogoro")
            shipment_repo.update_status(shipment, "IN_TRANSIT")
    """
    try:
        yield session
        session.commit()
    except OperationalError as e:
        session.rollback()
        raise PersistenceError(f"Database operation failed: {e.orig}") from e
    except Exception:
        session.rollback()
        raise
