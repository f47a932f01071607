"""Database connection and session management.

Async SQLAlchemy setup for SQLite (dev) and PostgreSQL (prod). The database
is the only shared mutable resource in SealDrop; every quota decision and
every fetch reads from it.

Examples:
    >>> from sealdrop.database import get_session_factory, init_db
    >>> await init_db()
    >>> async with get_session_factory()() as session:
    ...     result = await session.execute(select(Entry))

Tests:
    - tests/unit/test_database.py
"""

from __future__ import annotations

import logging
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sealdrop.config import get_settings

logger = logging.getLogger(__name__)

# Created lazily on first use
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine configured for the URL's backend.

    Args:
        database_url: SQLAlchemy async URL.
        echo: Log emitted SQL.

    Returns:
        AsyncEngine: New engine. SQLite gets WAL and a busy timeout,
        PostgreSQL gets a pre-pinged connection pool.
    """
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async engine."""
    global _engine

    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for_url(settings.DATABASE_URL, echo=settings.DEBUG)
        logger.info(f"Database engine created: {settings.DATABASE_URL.split('@')[-1]}")

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _async_session_factory

    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _async_session_factory


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables. Called once at application startup."""
    from sealdrop.models import Base

    engine = engine or get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created")


async def check_db_connection(engine: AsyncEngine | None = None) -> bool:
    """Check if the database is accessible.

    Returns:
        bool: True if a trivial query succeeds.
    """
    try:
        engine = engine or get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db() -> None:
    """Dispose of the engine. Called at application shutdown."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connections closed")
