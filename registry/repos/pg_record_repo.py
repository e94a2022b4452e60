"""PostgreSQL implementation of RecordRepo."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from registry.db.tables import RecordRow
from registry.models.record import Record
from registry.services.errors import RecordAlreadyExistsError


class PgRecordRepo:
    """Satisfies the RecordRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, record_id: str) -> Record | None:
        stmt = (
            select(RecordRow)
            .where(RecordRow.record_id == record_id)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def add(self, record: Record) -> None:
        row = RecordRow(
            record_id=record.record_id,
            issuer=record.issuer,
            file_hash=record.file_hash,
            issued_at=record.issued_at,
            revoked=record.revoked,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError:
            # Another instance won the race for this id; the primary key
            # is the final word.  The request transaction rolls back.
            raise RecordAlreadyExistsError(record.record_id) from None

    async def mark_revoked(self, record_id: str) -> Record | None:
        # Compare-and-set: under READ COMMITTED a concurrent revoke that
        # committed first makes this match zero rows instead of revoking twice.
        stmt = (
            update(RecordRow)
            .where(RecordRow.record_id == record_id, RecordRow.revoked.is_(False))
            .values(revoked=True)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(record_id)


def _row_to_record(row: RecordRow) -> Record:
    return Record(
        record_id=row.record_id,
        issuer=row.issuer,
        file_hash=row.file_hash,
        issued_at=row.issued_at,
        revoked=row.revoked,
    )
