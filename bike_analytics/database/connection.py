"""
Database Connection Management

One async engine per process, created by init_database() and disposed by
close_database(). Two session scopes are offered:

- get_db(): read-write unit of work, committed on success
- snapshot_session(): read-only transaction pinned to a snapshot isolation
  level, always rolled back
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from bike_analytics.config import get_settings
from .models import Base

logger = structlog.get_logger(__name__)

# Isolation level giving one consistent cut across the three tables
SNAPSHOT_ISOLATION = {
    "postgresql": "REPEATABLE READ",
    "sqlite": "SERIALIZABLE",
}

_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Create the engine and check it can reach the database.

    Args:
        url: Async database URL; defaults to settings.database.async_url

    Returns:
        The process-wide engine

    Raises:
        Whatever the driver raises when the database is unreachable; the
        engine is disposed first
    """
    global _engine, _sessions

    if _engine is not None:
        logger.warning("Database already initialized", dialect=_engine.dialect.name)
        return _engine

    db_settings = get_settings().database
    # asyncpg pools its own connections
    _engine = create_async_engine(
        url or db_settings.async_url,
        echo=db_settings.echo,
        pool_pre_ping=True,
        poolclass=NullPool,
    )
    _sessions = async_sessionmaker(bind=_engine, expire_on_commit=False, autoflush=False)

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database unreachable", error=str(e), error_type=type(e).__name__)
        await close_database()
        raise

    logger.info("Database connected", dialect=_engine.dialect.name)
    return _engine


async def close_database() -> None:
    global _engine, _sessions

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    _sessions = None
    logger.info("Database engine disposed")


def get_engine() -> AsyncEngine:
    """The initialized engine; RuntimeError before init_database()"""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


def _session_factory() -> async_sessionmaker[AsyncSession]:
    if _sessions is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _sessions


async def create_tables() -> None:
    """Create dim_customers, dim_products and fact_sales where missing"""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Star schema ready", tables=sorted(Base.metadata.tables))


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Read-write session.

    Commits when the block exits cleanly; on error rolls back and re-raises.

    Example:
        async with get_db() as db:
            await seed_snapshot(db, snapshot)
    """
    session = _session_factory()()
    try:
        yield session
        await session.commit()
    except Exception as e:
        logger.error("Rolling back session", error=str(e), error_type=type(e).__name__)
        await session.rollback()
        raise
    finally:
        await session.close()


@asynccontextmanager
async def snapshot_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Read-only session whose reads all see the same committed state.

    The transaction is opened at the dialect's snapshot isolation level
    before any statement runs and is rolled back on exit.

    Example:
        async with snapshot_session() as db:
            snapshot = await load_snapshot(db)
    """
    dialect = get_engine().dialect.name
    level = SNAPSHOT_ISOLATION.get(dialect)

    session = _session_factory()()
    try:
        if level is not None:
            await session.connection(execution_options={"isolation_level": level})
        logger.debug("Snapshot transaction opened", dialect=dialect, isolation_level=level)
        yield session
    finally:
        await session.rollback()
        await session.close()
