"""PostgreSQL implementation of EventLog."""

from __future__ import annotations

import json

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from registry.db.tables import RegistryEventRow
from registry.models.event import GENESIS_DIGEST, PendingEvent, RegistryEvent, seal

# Arbitrary constant key for pg_advisory_xact_lock.  Appends from every
# API instance serialize on it, so the chain never forks.
_CHAIN_LOCK_KEY = 0x5245_4749_5354  # "REGIST"


class PgEventLog:
    """Satisfies the EventLog Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, pending: PendingEvent) -> RegistryEvent:
        # Transaction-scoped: held until the request commits or rolls back,
        # so the next appender always sees this event as the chain head.
        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"), {"key": _CHAIN_LOCK_KEY}
        )
        head_stmt = (
            select(RegistryEventRow).order_by(RegistryEventRow.seq.desc()).limit(1)
        )
        head = (await self._session.execute(head_stmt)).scalar_one_or_none()
        if head is None:
            seq, prev_digest = 1, GENESIS_DIGEST
        else:
            seq, prev_digest = head.seq + 1, head.digest

        event = seal(pending, seq=seq, prev_digest=prev_digest)
        self._session.add(
            RegistryEventRow(
                seq=event.seq,
                name=event.name,
                timestamp=event.timestamp,
                record_id=event.record_id,
                payload_json=json.dumps(event.payload, sort_keys=True),
                prev_digest=event.prev_digest,
                digest=event.digest,
            )
        )
        await self._session.flush()
        return event

    async def list_after(self, after_seq: int, limit: int) -> list[RegistryEvent]:
        stmt = (
            select(RegistryEventRow)
            .where(RegistryEventRow.seq > after_seq)
            .order_by(RegistryEventRow.seq)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_event(r) for r in rows]

    async def list_for_record(self, record_id: str) -> list[RegistryEvent]:
        stmt = (
            select(RegistryEventRow)
            .where(RegistryEventRow.record_id == record_id)
            .order_by(RegistryEventRow.seq)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_event(r) for r in rows]


def _row_to_event(row: RegistryEventRow) -> RegistryEvent:
    return RegistryEvent(
        seq=row.seq,
        name=row.name,
        timestamp=row.timestamp,
        record_id=row.record_id,
        payload=json.loads(row.payload_json),
        prev_digest=row.prev_digest,
        digest=row.digest,
    )
