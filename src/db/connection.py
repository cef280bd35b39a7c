"""Database connection management for Epesi dashboards.

Provides synchronous database access using SQLAlchemy. Supports SQLite for
development with a PostgreSQL path for production.

Usage:
    from src.db.connection import get_db, init_db

    init_db()  # Create tables
    db = next(get_db())
    # ... use db session
"""

import logging
import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, select, update
from sqlalchemy.orm import Session, sessionmaker

from src.db.models import Base, Dashboard, utc_now_iso

logger = logging.getLogger(__name__)


# Configuration
def get_database_url() -> str:
    """Get database URL from environment or use default SQLite.

    Precedence:
    1. DATABASE_URL (canonical)
    2. EPESI_DB_PATH (converted to sqlite URL)
    3. sqlite:///<data dir>/epesi.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    db_path = os.environ.get("EPESI_DB_PATH", "").strip()
    if db_path:
        if db_path.startswith("sqlite:"):
            return db_path
        return f"sqlite:///{db_path}"

    from src.utils.paths import get_default_db_path
    return f"sqlite:///{get_default_db_path()}"


# Engine creation
DATABASE_URL = get_database_url()

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False}
    if DATABASE_URL.startswith("sqlite")
    else {},
    echo=os.environ.get("SQL_ECHO", "").lower() == "true",
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Configure SQLite pragmas for correctness and concurrency.

    Enables:
    - foreign_keys=ON: cascading deletes of blocks, history and messages.
    - journal_mode=WAL: concurrent readers alongside a single writer.
    - busy_timeout: writers queue behind a held write lock instead of
      failing immediately, which is what serializes position updates.
    """
    if DATABASE_URL.startswith("sqlite"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA busy_timeout=5000;")
        cursor.close()


# Session factories
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


# Dependency functions for FastAPI


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for synchronous operations.

    Intended for use with FastAPI's Depends() for request-scoped sessions.

    Usage:
        @router.get("/dashboards/{dashboard_id}/blocks")
        def list_blocks(db: Session = Depends(get_db)):
            ...

    Yields:
        Session: SQLAlchemy session that will be closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database sessions outside of FastAPI.

    Usage:
        with get_db_context() as db:
            dashboard = db.query(Dashboard).first()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def lock_row(db: Session, model: type[Base], row_id: str) -> Any:
    """Take a row-level write lock on a parent row for the current transaction.

    Callers that derive the next position or sequence number from their
    children (MAX + 1) lock the parent first, so two concurrent writers
    cannot both read the same maximum. The lock is held until the session
    commits or rolls back.

    On SQLite the first write of a transaction acquires the database
    write lock, so the row's ``updated_at`` is touched. Server databases
    lock the row with SELECT ... FOR UPDATE.

    Args:
        db: Active session; the lock joins its transaction.
        model: Mapped class with ``id`` and ``updated_at`` columns.
        row_id: Primary key of the row to lock.

    Returns:
        The locked instance, or None if it does not exist.
    """
    if db.get_bind().dialect.name == "sqlite":
        result = db.execute(
            update(model)
            .where(model.id == row_id)
            .values(updated_at=utc_now_iso())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return db.get(model, row_id)

    row = db.execute(
        select(model).where(model.id == row_id).with_for_update()
    ).scalar_one_or_none()
    if row is not None:
        row.updated_at = utc_now_iso()
    return row


def lock_dashboard(db: Session, dashboard_id: str) -> Dashboard | None:
    """Take the per-dashboard write lock for the current transaction.

    Every position-mutating operation calls this before reading block
    positions, so two concurrent inserts into one dashboard cannot both
    compute their shift from the same stale read.

    Args:
        db: Active session; the lock joins its transaction.
        dashboard_id: Dashboard whose block order is about to change.

    Returns:
        The locked Dashboard, or None if it does not exist.
    """
    return lock_row(db, Dashboard, dashboard_id)


# Initialization functions


def init_db() -> None:
    """Create all database tables synchronously.

    Uses the Base.metadata from models.py to create all defined tables.
    Safe to call multiple times - will not recreate existing tables.

    Usage:
        from src.db.connection import init_db
        init_db()
    """
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized at %s", engine.url.render_as_string(hide_password=True))


def close_db() -> None:
    """Close the sync engine and dispose of connection pool."""
    engine.dispose()
