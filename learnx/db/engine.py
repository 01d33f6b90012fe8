"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured the key-value namespaces live in one SQL
table.  Two URL shapes are expected:

  sqlite+aiosqlite:///./learnx.db          local durable store (single node)
  postgresql+asyncpg://user:pw@host/db     shared store

When DATABASE_URL is None nothing here is constructed and the service
falls back to Redis or the in-memory store.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # SQLite has no server-side pool to size
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables.  Idempotent."""
    # Import for the side effect of registering the tables on Base.metadata.
    from learnx.db import tables  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan_db(engine: AsyncEngine | None) -> AsyncIterator[None]:
    """Startup/shutdown hook: ensure the schema exists, dispose on exit."""
    if engine is None:
        logger.info("No DATABASE_URL configured; SQL store disabled")
        yield
        return

    await create_schema(engine)
    logger.info("Database ready: %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
