"""Database configuration and session management."""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from snaptag.exceptions import StoreError
from snaptag.settings import settings

logger = logging.getLogger(__name__)


def get_engine_kwargs(database_url: str = None) -> dict:
    """Return SQLAlchemy engine kwargs with safe defaults for long-running jobs."""
    database_url = database_url or settings.database_url
    kwargs = {
        "pool_pre_ping": settings.db_pool_pre_ping,
        "pool_recycle": settings.db_pool_recycle,
    }

    # QueuePool sizing only applies to non-sqlite engines.
    if not database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
        kwargs["pool_timeout"] = settings.db_pool_timeout

    if database_url.startswith("postgresql"):
        kwargs["connect_args"] = {"connect_timeout": settings.db_connect_timeout}
    elif database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}

    return kwargs


def build_engine(database_url: str = None, **overrides):
    """Build a database engine using configured pool and connectivity options."""
    database_url = database_url or settings.database_url
    kwargs = get_engine_kwargs(database_url)
    kwargs.update(overrides)
    engine = create_engine(database_url, **kwargs)
    if database_url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Create database engine
engine = build_engine()

# Create session factory
SessionLocal = sessionmaker(bind=engine)


def get_db():
    """Get database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """Run a block of writes as one all-or-nothing unit.

    Commits when the block exits cleanly and rolls back otherwise. Driver
    faults are re-raised as StoreError; domain errors pass through untouched.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Transaction rolled back: %s", exc)
        raise StoreError(f"Database error: {exc}") from exc
    except Exception:
        db.rollback()
        raise


@contextmanager
def read_guard():
    """Surface driver faults raised by read-only queries as StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreError(f"Database error: {exc}") from exc
