from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from registry.models.record import Record
from registry.services.errors import RecordAlreadyExistsError


class RecordRepo(Protocol):
    async def get(self, record_id: str) -> Record | None: ...
    async def add(self, record: Record) -> None: ...
    async def mark_revoked(self, record_id: str) -> Record | None: ...


class InMemoryRecordRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, Record] = {}

    async def get(self, record_id: str) -> Record | None:
        return self._by_id.get(record_id)

    async def add(self, record: Record) -> None:
        # The store checks first; this is the last line against overwrite.
        if record.record_id in self._by_id:
            raise RecordAlreadyExistsError(record.record_id)
        self._by_id[record.record_id] = record

    async def mark_revoked(self, record_id: str) -> Record | None:
        """Flip `revoked` on a live record.  None if missing or already revoked."""
        existing = self._by_id.get(record_id)
        if existing is None or existing.revoked:
            return None
        updated = replace(existing, revoked=True)
        self._by_id[record_id] = updated
        return updated
