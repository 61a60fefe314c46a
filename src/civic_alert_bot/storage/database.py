"""Async engine and session factory helpers."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from civic_alert_bot.storage.models import Base

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Select the asyncpg driver for plain PostgreSQL URLs."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://") :]
    return url


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create the async engine for a database URL."""
    return create_async_engine(normalize_database_url(url), echo=echo, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine.

    Objects stay usable after commit so DTOs can be built outside the
    transaction that loaded them.
    """
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create any missing tables.

    Intended for local SQLite databases and tests; production tables are
    owned by the platform's migrations.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialised")
