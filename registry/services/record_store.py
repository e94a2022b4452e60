"""Record store: the ground truth for issued credentials.

Owns every record mutation and the events they emit.  It does not know
who is calling or whether they are allowed to; authorization happens in
the access policy before any method here is reached.

Each mutation validates first and writes second, and writes the record
change and its event in the same unit of work (the request transaction
with PostgreSQL, one uninterrupted step in memory).  A failed call
therefore leaves neither a record without its event nor an event
without its record.
"""

from __future__ import annotations

import logging

from registry.models import event as events
from registry.models.record import NOT_VERIFIED, Record, Verification
from registry.repos.event_log import EventLog
from registry.repos.record_repo import RecordRepo
from registry.services.errors import (
    RecordAlreadyExistsError,
    RecordAlreadyRevokedError,
    RecordNotFoundError,
)

logger = logging.getLogger(__name__)


class RecordStore:
    def __init__(self, records: RecordRepo, event_log: EventLog) -> None:
        self._records = records
        self._events = event_log

    async def issue(
        self, *, record_id: str, issuer: str, file_hash: str, now: int
    ) -> Record:
        if await self._records.get(record_id) is not None:
            raise RecordAlreadyExistsError(record_id)

        record = Record.new(
            record_id=record_id, issuer=issuer, file_hash=file_hash, issued_at=now
        )
        await self._records.add(record)
        await self._events.append(
            events.record_issued(
                record_id=record_id, issuer=issuer, file_hash=file_hash, timestamp=now
            )
        )
        logger.info(
            "Record issued record_id=%s issuer=%s",
            record_id,
            issuer,
            extra={"record_id": record_id, "caller": issuer},
        )
        return record

    async def revoke(self, *, record_id: str, caller: str, now: int) -> Record:
        existing = await self._records.get(record_id)
        if existing is None:
            raise RecordNotFoundError(record_id)
        if existing.revoked:
            raise RecordAlreadyRevokedError(record_id)

        updated = await self._records.mark_revoked(record_id)
        if updated is None:
            # Lost a compare-and-set race with another revoke.
            raise RecordAlreadyRevokedError(record_id)
        await self._events.append(
            events.record_revoked(record_id=record_id, revoker=caller, timestamp=now)
        )
        logger.info(
            "Record revoked record_id=%s revoker=%s",
            record_id,
            caller,
            extra={"record_id": record_id, "caller": caller},
        )
        return updated

    async def get(self, record_id: str) -> Record | None:
        return await self._records.get(record_id)

    async def verify(self, record_id: str, file_hash: str) -> Verification:
        """Authentic iff the record exists and its hash matches.

        `revoked` reports the stored flag whether or not the hash matched.
        Unknown ids verify as (False, False); this never raises.
        """
        record = await self._records.get(record_id)
        if record is None:
            return NOT_VERIFIED
        return Verification(
            authentic=record.file_hash == file_hash,
            revoked=record.revoked,
        )
