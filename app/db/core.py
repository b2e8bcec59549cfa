"""
Database core for the BuildTrust API.

Single import path for the async engine and session factory:

- get_engine(): lazily built AsyncEngine (MySQL via aiomysql, SQLite via aiosqlite)
- get_sessionmaker(): async_sessionmaker bound to that engine
- get_async_db(): FastAPI dependency yielding a session
- health_check_async(): connectivity probe used by /api/status
- dispose_engines(): shutdown hook
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.settings import settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    # SQLite ignores ON DELETE CASCADE unless the pragma is on per connection
    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str | None = None) -> AsyncEngine:
    url = url or settings.database_url
    pool_disabled = settings.DB_POOL.strip().lower() == "disabled"

    if _is_sqlite(url) or pool_disabled:
        logger.info(
            "🗄️ DB_ASYNC_ENGINE_INIT",
            extra={"meta": {"pool_class": "NullPool", "backend": make_url(url).drivername}},
        )
        engine = create_async_engine(url, poolclass=NullPool, echo=False)
    else:
        logger.info(
            "🗄️ DB_ASYNC_ENGINE_INIT",
            extra={
                "meta": {
                    "pool_size": settings.DB_POOL_SIZE,
                    "max_overflow": 0,
                    "pool_timeout": settings.DB_POOL_TIMEOUT,
                }
            },
        )
        # Fixed-size pool; callers queue for a connection up to pool_timeout
        engine = create_async_engine(
            url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=0,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
            pool_recycle=1800,
            echo=False,
        )

    if _is_sqlite(url):
        _enable_sqlite_foreign_keys(engine)
    return engine


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = async_sessionmaker(
            bind=get_engine(), expire_on_commit=False, class_=AsyncSession
        )
    return _sessionmaker


def AsyncSessionLocal() -> AsyncSession:
    """Open a new session from the process-wide factory."""
    return get_sessionmaker()()


async def get_async_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request, always closed."""
    session = AsyncSessionLocal()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def health_check_async() -> bool:
    """Asynchronous connectivity check"""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Async database health check failed: %s", e)
        return False


async def dispose_engines() -> None:
    """Dispose SQLAlchemy engines on shutdown"""
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


__all__ = [
    "build_engine",
    "get_engine",
    "get_sessionmaker",
    "AsyncSessionLocal",
    "get_async_db",
    "health_check_async",
    "dispose_engines",
]
