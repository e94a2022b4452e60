"""Prometheus scrape endpoint.

Returns every metric in registry.core.metrics in the text exposition
format.  Restrict access at the ingress in production: denial and
revocation counters reveal who is probing the registry and how often.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
