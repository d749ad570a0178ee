"""
Database Configuration

The engine is built lazily from Settings.DATABASE_URL so the app can start
(and report a configuration error per request) without credentials.
The connection string is never logged.
"""

import logging
import time
from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from shopquotes.config import Settings, get_settings
from shopquotes.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = 500

DATABASE_NOT_CONFIGURED = (
    "Banco de dados não configurado. Defina DATABASE_URL no ambiente (.env)."
)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# Slow query logging
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info["query_start_time"] = time.monotonic()


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start = conn.info.get("query_start_time")
    if start is None:
        return
    duration_ms = (time.monotonic() - start) * 1000
    if duration_ms >= SLOW_QUERY_THRESHOLD_MS:
        param_count = len(parameters) if parameters else 0
        truncated = statement[:200] + ("..." if len(statement) > 200 else "")
        logger.warning(
            "Slow query (%.0fms, %d params): %s", duration_ms, param_count, truncated
        )


_engines: dict[str, AsyncEngine] = {}
_session_makers: dict[str, async_sessionmaker[AsyncSession]] = {}


def get_engine(settings: Settings) -> AsyncEngine:
    """Return the engine for the configured URL, creating it on first use."""
    if not settings.DATABASE_URL:
        raise ConfigurationError(DATABASE_NOT_CONFIGURED)

    url = settings.DATABASE_URL
    engine = _engines.get(url)
    if engine is None:
        options = {"echo": settings.sqlalchemy_echo, "future": True}
        if url.startswith("postgresql"):
            options.update(
                pool_size=5,
                max_overflow=5,
                pool_recycle=1800,
                pool_pre_ping=True,
            )
        engine = create_async_engine(url, **options)
        event.listen(engine.sync_engine, "before_cursor_execute", _before_cursor_execute)
        event.listen(engine.sync_engine, "after_cursor_execute", _after_cursor_execute)
        _engines[url] = engine
        logger.info("Database engine created (dialect: %s)", engine.dialect.name)
    return engine


def get_session_maker(settings: Settings) -> async_sessionmaker[AsyncSession]:
    engine = get_engine(settings)
    maker = _session_makers.get(settings.DATABASE_URL)
    if maker is None:
        maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        _session_makers[settings.DATABASE_URL] = maker
    return maker


async def get_db(settings: Settings = Depends(get_settings)) -> AsyncIterator[AsyncSession]:
    """Dependency to get database session.

    Note: Endpoints are responsible for calling commit() when needed.
    This dependency only provides the session and handles cleanup.
    """
    session = get_session_maker(settings)()
    try:
        yield session
    finally:
        await session.close()


async def init_db(settings: Settings):
    """Create any missing tables (Alembic owns schema changes)."""
    engine = get_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engines():
    for engine in _engines.values():
        await engine.dispose()
    _engines.clear()
    _session_makers.clear()
