"""
Database session management for the rating engine.

Provides the SQLAlchemy engine and session factory with connection pooling
configured from config.py. The engine is created lazily so that importing
the models (tests, alembic) never opens a connection.

Usage:
    from ratingupdate.db import get_session

    with get_session() as session:
        session.add(EngineConfig(last_update=0))
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ratingupdate.config import settings


def get_engine() -> Engine:
    """
    Return the process-wide SQLAlchemy engine, creating it on first use.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode disabled (set LOG_LEVEL=DEBUG for SQL logging)
    - Pre-ping to verify connections before use (handles stale connections)
    """
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            echo=settings.log_level == "DEBUG",
        )
    return _engine


_engine: Engine | None = None

# Unbound factory; get_session() binds it to the engine on first use
SessionLocal = sessionmaker(autoflush=False)


def new_session() -> Session:
    """Open a session bound to the configured engine. The caller owns commit/close."""
    return SessionLocal(bind=get_engine())


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    This is the recommended way to use sessions in scripts and tasks.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = new_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
