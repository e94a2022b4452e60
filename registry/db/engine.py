"""PostgreSQL engine and per-request transactions.

DATABASE_URL set: an asyncpg engine plus a session factory.  Each API
request gets one session via session_scope(), and that session is the
request's only transaction.

DATABASE_URL unset: `engine` and `async_session_factory` stay None and
the registry keeps its state in the in-memory repositories.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from registry.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the registry tables."""


def _build(url: str) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    eng = create_async_engine(
        url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    # Records handed back after commit must stay readable.
    factory = async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    return eng, factory


engine: AsyncEngine | None
async_session_factory: async_sessionmaker[AsyncSession] | None
if SETTINGS.database_url:
    engine, async_session_factory = _build(SETTINGS.database_url)
else:
    engine, async_session_factory = None, None


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session; commit if the block finishes, roll back if it raises.

    Everything a registry call writes (record row, role rows, audit
    events) goes through this session, so a rejected call leaves no trace.
    """
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured; no database session")
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


async def ping_database() -> bool:
    """True if a trivial query round-trips.  Raises nothing."""
    if engine is None:
        return False
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return False
    return True


@asynccontextmanager
async def lifespan_db() -> AsyncGenerator[None, None]:
    if engine is None:
        logger.info("No DATABASE_URL configured; registry state is in-memory")
        yield
        return

    logger.info("Database engine created: %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
