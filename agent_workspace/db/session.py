"""
Database session management for the retrieval index.

The engine is created lazily and only when DATABASE_URL is configured.
Without it the application runs on the in-memory chunk store, and
check_db_health() reports the store as disabled rather than failing.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agent_workspace.core.config import settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def get_engine() -> AsyncEngine | None:
    """Return the shared engine, creating it on first use. None if unconfigured."""
    global _engine
    if _engine is None and settings.store_configured:
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,          # detect stale connections before use
            pool_recycle=3600,           # recycle connections every hour
            echo=settings.db_echo_sql,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
    global _session_factory
    engine = get_engine()
    if _session_factory is None and engine is not None:
        # expire_on_commit=False keeps ORM objects usable after commit
        _session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """One transaction: commits on exit, rolls back on error."""
    async with factory() as session:
        async with session.begin():
            yield session


async def init_models() -> None:
    """Create the chunk and record tables if they do not exist yet."""
    engine = get_engine()
    if engine is None:
        return
    from agent_workspace.models.chunks import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database | tables ensured")


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


# ---------------------------------------------------------------------------
# Health check helper
# ---------------------------------------------------------------------------

async def check_db_health() -> dict:
    """Ping the database; used by the readiness endpoint."""
    engine = get_engine()
    if engine is None:
        return {"status": "disabled"}
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
