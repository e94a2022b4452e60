"""Prometheus metrics middleware: instruments every HTTP request.

The endpoint label is the matched route template
("/v1/records/{record_id}/verify"), not the raw path.  Record ids are
unbounded, and one time series per id would swamp Prometheus.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from registry.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

_SKIP_PATHS = frozenset({"/metrics"})


def _endpoint_label(request: Request) -> str:
    # The router stores the matched route in the shared scope.
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if isinstance(path, str) else "unmatched"


def _observe(request: Request, status_code: int, started: float) -> None:
    endpoint = _endpoint_label(request)
    REQUEST_COUNT.labels(
        method=request.method, endpoint=endpoint, status_code=str(status_code)
    ).inc()
    REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(
        time.monotonic() - started
    )


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count, time and gauge every request except scrapes of /metrics."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        started = time.monotonic()
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
            except Exception:
                # Starlette turns this into a 500 further out.
                _observe(request, 500, started)
                raise
        _observe(request, response.status_code, started)
        return response
