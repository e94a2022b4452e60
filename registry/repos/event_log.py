from __future__ import annotations

from typing import Protocol

from registry.models.event import GENESIS_DIGEST, PendingEvent, RegistryEvent, seal


class EventLog(Protocol):
    async def append(self, pending: PendingEvent) -> RegistryEvent: ...
    async def list_after(self, after_seq: int, limit: int) -> list[RegistryEvent]: ...
    async def list_for_record(self, record_id: str) -> list[RegistryEvent]: ...


class InMemoryEventLog:
    """Append-only, hash-chained list of events.

    append() has no await between reading the chain head and writing the
    new entry, so it cannot interleave with another append on the same
    event loop.
    """

    def __init__(self) -> None:
        self._events: list[RegistryEvent] = []

    async def append(self, pending: PendingEvent) -> RegistryEvent:
        prev_digest = self._events[-1].digest if self._events else GENESIS_DIGEST
        event = seal(pending, seq=len(self._events) + 1, prev_digest=prev_digest)
        self._events.append(event)
        return event

    async def list_after(self, after_seq: int, limit: int) -> list[RegistryEvent]:
        # seq starts at 1, so seq N lives at index N-1
        start = max(after_seq, 0)
        return list(self._events[start : start + limit])

    async def list_for_record(self, record_id: str) -> list[RegistryEvent]:
        return [e for e in self._events if e.record_id == record_id]
