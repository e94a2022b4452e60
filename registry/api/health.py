"""Health and readiness endpoints.

  /health (liveness): "is this process alive?"  Always 200; the body
      reports per-dependency status so a degraded Redis or database is
      visible without getting the container restarted.

  /ready (readiness): "can this instance take writes right now?"
      503 when a configured dependency is unreachable, which takes the
      instance out of the load balancer until it recovers.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Response, status

from registry.core.config import SETTINGS
from registry.db import engine as db_engine
from registry.db import redis as db_redis

router = APIRouter(tags=["health"])


async def _status(configured: bool, ping: Callable[[], Awaitable[bool]]) -> str:
    if not configured:
        return "not_configured"
    return "ok" if await ping() else "degraded"


async def _check_dependencies() -> dict[str, str]:
    return {
        "redis": await _status(db_redis.redis_pool is not None, db_redis.ping_redis),
        "database": await _status(db_engine.engine is not None, db_engine.ping_database),
    }


@router.get("/health")
async def health() -> dict:
    checks = await _check_dependencies()
    return {
        "status": "degraded" if "degraded" in checks.values() else "ok",
        "policy": SETTINGS.access_policy,
        "checks": checks,
    }


@router.get("/ready")
async def ready() -> Response:
    checks = await _check_dependencies()
    if "degraded" in checks.values():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
