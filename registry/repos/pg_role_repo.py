"""PostgreSQL implementation of RoleRepo."""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from registry.db.tables import RoleMembershipRow
from registry.models.role import RoleMembership


class PgRoleRepo:
    """Satisfies the RoleRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def has_role(self, identity: str, role: str) -> bool:
        stmt = select(RoleMembershipRow.identity).where(
            RoleMembershipRow.identity == identity,
            RoleMembershipRow.role == role,
        )
        return (await self._session.execute(stmt)).first() is not None

    async def grant(self, membership: RoleMembership) -> bool:
        stmt = (
            insert(RoleMembershipRow)
            .values(
                identity=membership.identity,
                role=membership.role,
                granted_at=membership.granted_at,
            )
            .on_conflict_do_nothing(index_elements=["identity", "role"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def revoke(self, identity: str, role: str) -> bool:
        stmt = delete(RoleMembershipRow).where(
            RoleMembershipRow.identity == identity,
            RoleMembershipRow.role == role,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_by_role(self, role: str) -> list[RoleMembership]:
        stmt = (
            select(RoleMembershipRow)
            .where(RoleMembershipRow.role == role)
            .order_by(RoleMembershipRow.granted_at, RoleMembershipRow.identity)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            RoleMembership(identity=r.identity, role=r.role, granted_at=r.granted_at)
            for r in rows
        ]

    async def count(self, role: str) -> int:
        stmt = (
            select(func.count())
            .select_from(RoleMembershipRow)
            .where(RoleMembershipRow.role == role)
        )
        return int((await self._session.execute(stmt)).scalar_one())
