"""Redis connection for cross-instance write locks.

The registry uses Redis for one thing: per-record write locks shared by
every API instance, so two instances can never both pass the "is this id
free?" check for the same record before either writes.  Without
REDIS_URL, `redis_pool` is None and locks stay in-process.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from registry.core.config import SETTINGS

logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    aioredis.from_url(SETTINGS.redis_url, decode_responses=True, max_connections=20)
    if SETTINGS.redis_url
    else None
)


async def ping_redis() -> bool:
    """True if Redis answers PING.  Raises nothing."""
    if redis_pool is None:
        return False
    try:
        await redis_pool.ping()  # type: ignore[misc]  # async ping is typed as bool
    except Exception:
        logger.warning("Redis ping failed", exc_info=True)
        return False
    return True


@asynccontextmanager
async def lifespan_redis() -> AsyncGenerator[None, None]:
    if redis_pool is None:
        logger.info("No REDIS_URL configured; write locks are in-process only")
        yield
        return

    if await ping_redis():
        logger.info("Redis connected for write locks")
    else:
        # Keep serving reads; each write fails with 503 until Redis is back.
        logger.error("Redis unreachable on startup; writes will be refused")
    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
