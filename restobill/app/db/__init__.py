"""Async engine and session helpers.

A single engine is shared by all restaurants; rows are scoped by
``restaurant_id``. The DSN comes from :func:`config.get_settings` and defaults
to a local SQLite file driven by ``aiosqlite``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from config import get_settings

from ..models import Base
from ..obs import add_query_logger

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def create_engine_for(url: str) -> AsyncEngine:
    """Create an :class:`AsyncEngine` for ``url`` with query timing attached.

    In-memory SQLite URLs get a static pool so every session sees the same
    database.
    """
    kwargs: dict = {}
    if url.startswith("sqlite") and ":memory:" in url:
        kwargs = {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    engine = create_async_engine(url, **kwargs)
    add_query_logger(engine, "restobill")
    return engine


def get_engine() -> AsyncEngine:
    """Return a singleton async engine for the configured database."""
    global _engine, _sessionmaker
    if _engine is None:
        _engine = create_engine_for(get_settings().database_url)
        _sessionmaker = async_sessionmaker(
            _engine, expire_on_commit=False, class_=AsyncSession
        )
    return _engine


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create all tables on ``engine`` if they do not exist yet."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session and ensure it is closed afterwards."""
    if _sessionmaker is None:
        get_engine()
    assert _sessionmaker is not None  # for type checkers
    session = _sessionmaker()
    try:
        yield session
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request scoped :class:`AsyncSession`."""
    async with get_session() as session:
        yield session


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


__all__ = [
    "create_engine_for",
    "get_engine",
    "init_models",
    "get_session",
    "get_db",
    "dispose_engine",
]
