"""Database utilities for the Daily Tracker backend."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL, ensure_data_dir

engine_kwargs: Dict[str, Any] = {"pool_pre_ping": True}

if DATABASE_URL.startswith("sqlite"):
    ensure_data_dir()
    connect_args = {"check_same_thread": False, "timeout": 30}
    if ":memory:" in DATABASE_URL:
        engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(DATABASE_URL, connect_args=connect_args, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[override]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()
else:
    engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
)

_MAX_COMMIT_RETRIES = 5
_RETRY_BACKOFF_SECONDS = 0.2

Base = declarative_base()


def init_database() -> None:
    """Create all database tables and seed the badge catalog."""
    # Import models to ensure they are registered with the metadata
    from . import models  # noqa: F401  # pylint: disable=unused-import
    from .badges import seed_badge_catalog

    models.Base.metadata.create_all(bind=engine)

    with get_session() as session:
        seed_badge_catalog(session)


@contextmanager
def get_session() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session: Session = SessionLocal()
    try:
        yield session
        for attempt in range(_MAX_COMMIT_RETRIES):
            try:
                session.commit()
                break
            except OperationalError as exc:
                message = str(exc).lower()
                if (
                    "database is locked" not in message
                    and "database table is locked" not in message
                ):
                    raise

                session.rollback()

                if attempt == _MAX_COMMIT_RETRIES - 1:
                    raise

                time.sleep(_RETRY_BACKOFF_SECONDS * (attempt + 1))
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
