"""
Engine and session plumbing shared by the API and the CLI.

The API keeps one process-wide engine (``init_db`` / ``close_db``) and hands
out request-scoped sessions through ``get_db``. CLI commands open a
short-lived engine with ``open_session``. Both build their engine through
``build_engine`` and create missing tables with ``create_tables``, so the
two entry points cannot drift apart.
"""
from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from plp.config import settings

logger = logging.getLogger(__name__)

_SQLITE_FALLBACK = "sqlite+aiosqlite:///./plp.db"


class Base(DeclarativeBase):
    pass


@dataclass(frozen=True)
class DatabaseHandle:
    """An engine plus the session factory bound to it."""

    engine: AsyncEngine
    sessions: async_sessionmaker[AsyncSession]


_handle: DatabaseHandle | None = None


def get_database_url() -> str:
    """``PLP_DATABASE_URL``, or a local SQLite file when unset."""
    if settings.database_url:
        return settings.database_url
    logger.warning(f"⚠️ PLP_DATABASE_URL not set; content goes to {_SQLITE_FALLBACK}")
    return _SQLITE_FALLBACK


def _redact(url: str) -> str:
    return url.rsplit("@", 1)[-1]


def build_engine(url: str | None = None, *, echo: bool = False) -> DatabaseHandle:
    """Engine for *url* (default: configured URL) with a non-expiring session factory."""
    db_url = url or get_database_url()
    connect_args: dict[str, Any] = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_async_engine(db_url, echo=echo, connect_args=connect_args)
    return DatabaseHandle(
        engine=engine,
        sessions=async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False),
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create the content and collection tables if they do not exist."""
    from plp.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@contextlib.asynccontextmanager
async def _transaction(
    sessions: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with sessions() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Open the process-wide engine and make sure the schema exists."""
    global _handle

    url = get_database_url()
    logger.info(f"Connecting to database: {_redact(url)}")
    _handle = build_engine(url, echo=settings.debug)
    await create_tables(_handle.engine)
    logger.info("✅ Database ready")


async def close_db() -> None:
    global _handle

    if _handle is not None:
        await _handle.engine.dispose()
        _handle = None
        logger.info("Database connection closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    if _handle is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    async with _transaction(_handle.sessions) as session:
        yield session


@contextlib.asynccontextmanager
async def open_session(
    url: str | None = None,
    create_schema: bool = False,
) -> AsyncIterator[AsyncSession]:
    """Standalone session for CLI commands; disposes its engine on exit."""
    handle = build_engine(url)
    try:
        if create_schema:
            await create_tables(handle.engine)
        async with _transaction(handle.sessions) as session:
            yield session
    finally:
        await handle.engine.dispose()
