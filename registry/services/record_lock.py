"""Per-key write locks for registry mutations.

Every mutating call holds the lock for its key ("record:<id>" or
"roles") from the authorization check until its writes are done, so
two callers can never both see "id is free" and both issue.  Reads take
no lock.

Same backend split as the rest of the service: in-process asyncio locks
for a single instance (dev/test), Redis locks when several API instances
share one database.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol, runtime_checkable

from redis.exceptions import LockError, RedisError

from registry.core.config import SETTINGS
from registry.db.redis import redis_pool
from registry.services.errors import LockTimeoutError

logger = logging.getLogger(__name__)


@runtime_checkable
class RecordLock(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]:
        """Hold the write lock for `key` for the duration of the block."""
        ...


class InMemoryRecordLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self._timeout = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
            except TimeoutError:
                raise LockTimeoutError(key) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def active_keys(self) -> list[str]:
        return list(self._locks)


class RedisRecordLock:
    """Redis-backed lock shared by all API instances.

    The lock auto-expires after `timeout_seconds` so a crashed holder
    cannot wedge a record forever.
    """

    _PREFIX = "lock:"

    def __init__(self, redis_client, timeout_seconds: float = 10.0) -> None:
        self._redis = redis_client
        self._timeout = timeout_seconds

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"{self._PREFIX}{key}",
            timeout=self._timeout,
            blocking_timeout=self._timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError:
            logger.exception("Redis unavailable while locking key=%s", key)
            raise LockTimeoutError(key) from None
        if not acquired:
            raise LockTimeoutError(key)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Write lock expired before release key=%s", key)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    record_lock: RecordLock = RedisRecordLock(
        redis_pool, timeout_seconds=SETTINGS.lock_timeout_seconds
    )
else:
    record_lock = InMemoryRecordLock(timeout_seconds=SETTINGS.lock_timeout_seconds)
