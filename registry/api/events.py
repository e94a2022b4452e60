"""Audit event feed.

- GET /v1/events?after=<seq>&limit=<n>   page through the log in order
- GET /v1/events/verify                  re-hash the chain, report breaks

External indexers poll the feed with `after` set to the last seq they
stored.  Every event carries its chain digest, so an indexer can check
each page against what it already holds.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from registry.api.dependencies import get_registry
from registry.models.event import RegistryEvent
from registry.services.registry_service import RegistryService

router = APIRouter(prefix="/v1/events", tags=["events"])


class EventOut(BaseModel):
    seq: int
    name: str
    timestamp: int
    record_id: str | None
    payload: dict[str, object]
    prev_digest: str
    digest: str

    @staticmethod
    def from_event(event: RegistryEvent) -> EventOut:
        return EventOut(
            seq=event.seq,
            name=event.name,
            timestamp=event.timestamp,
            record_id=event.record_id,
            payload=event.payload,
            prev_digest=event.prev_digest,
            digest=event.digest,
        )


class ChainStatusOut(BaseModel):
    length: int
    head_digest: str
    intact: bool
    first_broken_seq: int | None


Registry = Annotated[RegistryService, Depends(get_registry)]


@router.get("", response_model=list[EventOut])
async def list_events(
    registry: Registry,
    after: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> list[EventOut]:
    return [EventOut.from_event(e) for e in await registry.list_events(after, limit)]


@router.get("/verify", response_model=ChainStatusOut)
async def verify_chain(registry: Registry) -> ChainStatusOut:
    result = await registry.verify_event_chain()
    return ChainStatusOut(
        length=result.length,
        head_digest=result.head_digest,
        intact=result.intact,
        first_broken_seq=result.first_broken_seq,
    )
