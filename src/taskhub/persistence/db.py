"""Async database engine for the origin store.

Provides PostgreSQL async connectivity using SQLAlchemy 2.0 asyncio
extension with asyncpg driver. SQLite URLs (aiosqlite) are accepted for
local runs and tests.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from taskhub.config import Settings
from taskhub.config import settings as default_settings


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create the process-wide async engine.

    Pool settings only apply to server databases; SQLite uses its own
    single-connection pool.
    """
    s = settings or default_settings
    if s.database_url.startswith("sqlite"):
        return create_async_engine(s.database_url)

    return create_async_engine(
        s.database_url,
        pool_size=s.db_pool_size,
        max_overflow=s.db_max_overflow,
        pool_timeout=s.db_pool_timeout,
        pool_recycle=s.db_pool_recycle,  # Recycle connections after 30 minutes
        pool_pre_ping=True,  # Verify connection health
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database (create tables if not exists)."""
    from taskhub.persistence.tables import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections."""
    await engine.dispose()


async def health_check(engine: AsyncEngine) -> bool:
    """Check database connectivity."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
