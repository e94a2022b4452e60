from __future__ import annotations

from typing import Protocol

from registry.models.role import RoleMembership


class RoleRepo(Protocol):
    async def has_role(self, identity: str, role: str) -> bool: ...
    async def grant(self, membership: RoleMembership) -> bool: ...
    async def revoke(self, identity: str, role: str) -> bool: ...
    async def list_by_role(self, role: str) -> list[RoleMembership]: ...
    async def count(self, role: str) -> int: ...


class InMemoryRoleRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], RoleMembership] = {}

    async def has_role(self, identity: str, role: str) -> bool:
        return (identity, role) in self._store

    async def grant(self, membership: RoleMembership) -> bool:
        """Add a membership.  Returns False if it was already present."""
        key = (membership.identity, membership.role)
        if key in self._store:
            return False
        self._store[key] = membership
        return True

    async def revoke(self, identity: str, role: str) -> bool:
        return self._store.pop((identity, role), None) is not None

    async def list_by_role(self, role: str) -> list[RoleMembership]:
        return [m for m in self._store.values() if m.role == role]

    async def count(self, role: str) -> int:
        return sum(1 for m in self._store.values() if m.role == role)
