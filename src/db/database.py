"""SQLite engine and session factory for the logistics store."""

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .schema import Base

BUSY_TIMEOUT_MS = 5_000


def _configure_sqlite(dbapi_connection: Any, connection_record: Any) -> None:
    # Request handlers and the simulation thread write concurrently
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlite_engine(db_path: str) -> Engine:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _configure_sqlite)
    return engine


def init_database(db_path: str) -> sessionmaker[Any]:
    """Create tables if needed and return a session factory.

    Objects stay usable after commit so services can publish and return
    what they just stored without reopening a session.
    """
    engine = create_sqlite_engine(db_path)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
