from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from registry.api.dependencies import bootstrap_registry
from registry.api.errors import install_error_handlers
from registry.api.events import router as events_router
from registry.api.health import router as health_router
from registry.api.metrics_endpoint import router as metrics_router
from registry.api.records import router as records_router
from registry.api.roles import router as roles_router
from registry.core.config import SETTINGS
from registry.core.logging import setup_logging
from registry.db.engine import lifespan_db
from registry.db.redis import lifespan_redis
from registry.middleware.metrics import MetricsMiddleware
from registry.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order: Redis closes before the engine.
    async with lifespan_db():
        async with lifespan_redis():
            await bootstrap_registry()
            yield


app = FastAPI(
    title="credential-registry",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext (outermost) → Metrics → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

install_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(records_router)
app.include_router(events_router)
app.include_router(roles_router)

logger.info(
    "credential-registry started  env=%s policy=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.access_policy,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
