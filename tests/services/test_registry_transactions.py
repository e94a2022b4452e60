"""Writes must be committed before the write lock is released.

Each service below stands in for one API request with its own database
session: its own role changes are visible to it immediately, while other
sessions only see them once committed.
"""

from __future__ import annotations

import asyncio

import pytest

from registry.models.role import ROLE_ADMIN, ROLE_OWNER, RoleMembership
from registry.repos.event_log import InMemoryEventLog
from registry.repos.record_repo import InMemoryRecordRepo
from registry.services.access_policy import build_policy
from registry.services.errors import RegistryError, UnauthorizedError
from registry.services.record_lock import InMemoryRecordLock
from registry.services.record_store import RecordStore
from registry.services.registry_service import RegistryService
from tests.conftest import h

Key = tuple[str, str]


class _SessionRoleRepo:
    """Role rows seen through one uncommitted transaction."""

    def __init__(self, committed: dict[Key, RoleMembership]) -> None:
        self._committed = committed
        self._pending: dict[Key, RoleMembership | None] = {}

    def _view(self) -> dict[Key, RoleMembership]:
        view = dict(self._committed)
        for key, membership in self._pending.items():
            if membership is None:
                view.pop(key, None)
            else:
                view[key] = membership
        return view

    async def has_role(self, identity: str, role: str) -> bool:
        await asyncio.sleep(0)
        return (identity, role) in self._view()

    async def grant(self, membership: RoleMembership) -> bool:
        await asyncio.sleep(0)
        key = (membership.identity, membership.role)
        if key in self._view():
            return False
        self._pending[key] = membership
        return True

    async def revoke(self, identity: str, role: str) -> bool:
        await asyncio.sleep(0)
        if (identity, role) not in self._view():
            return False
        self._pending[(identity, role)] = None
        return True

    async def list_by_role(self, role: str) -> list[RoleMembership]:
        return [m for m in self._view().values() if m.role == role]

    async def count(self, role: str) -> int:
        await asyncio.sleep(0)
        return sum(1 for m in self._view().values() if m.role == role)

    async def commit(self) -> None:
        await asyncio.sleep(0)
        for key, membership in self._pending.items():
            if membership is None:
                self._committed.pop(key, None)
            else:
                self._committed[key] = membership
        self._pending.clear()

    async def rollback(self) -> None:
        self._pending.clear()


def _sessions(
    kind: str, committed: dict[Key, RoleMembership], n: int = 2
) -> list[tuple[RegistryService, _SessionRoleRepo]]:
    lock = InMemoryRecordLock(timeout_seconds=1.0)
    log = InMemoryEventLog()
    records = InMemoryRecordRepo()
    out = []
    for _ in range(n):
        roles = _SessionRoleRepo(committed)
        service = RegistryService(
            policy=build_policy(kind, roles, log),
            store=RecordStore(records, log),
            event_log=log,
            lock=lock,
            clock=lambda: 1234,
            commit=roles.commit,
        )
        out.append((service, roles))
    return out


async def _request(repo: _SessionRoleRepo, call):
    """Run one call the way get_registry does: roll back on error, else commit."""
    try:
        result = await call
    except RegistryError:
        await repo.rollback()
        raise
    await repo.commit()
    return result


def test_admins_removing_each_other_leave_one_admin() -> None:
    committed = {
        ("xavier", ROLE_ADMIN): RoleMembership("xavier", ROLE_ADMIN, 1),
        ("yolanda", ROLE_ADMIN): RoleMembership("yolanda", ROLE_ADMIN, 1),
    }
    (first, first_repo), (second, second_repo) = _sessions("roles", committed)

    async def race():
        return await asyncio.gather(
            _request(first_repo, first.revoke_role("xavier", ROLE_ADMIN, "yolanda")),
            _request(second_repo, second.revoke_role("yolanda", ROLE_ADMIN, "xavier")),
            return_exceptions=True,
        )

    results = asyncio.run(race())
    admins = [key for key in committed if key[1] == ROLE_ADMIN]
    assert len(admins) == 1
    assert results.count(True) == 1
    assert sum(isinstance(r, UnauthorizedError) for r in results) == 1


def test_concurrent_ownership_transfers_leave_one_owner() -> None:
    committed = {("root", ROLE_OWNER): RoleMembership("root", ROLE_OWNER, 1)}
    (first, first_repo), (second, second_repo) = _sessions("whitelist", committed)

    async def race():
        return await asyncio.gather(
            _request(first_repo, first.transfer_ownership("root", "alice")),
            _request(second_repo, second.transfer_ownership("root", "bob")),
            return_exceptions=True,
        )

    results = asyncio.run(race())
    owners = [key for key in committed if key[1] == ROLE_OWNER]
    assert len(owners) == 1
    assert owners[0][0] in {"alice", "bob"}
    assert results.count(True) == 1
    assert sum(isinstance(r, UnauthorizedError) for r in results) == 1


def test_commit_runs_once_per_accepted_write() -> None:
    commits: list[str] = []

    async def commit() -> None:
        commits.append("commit")

    log = InMemoryEventLog()
    service = RegistryService(
        policy=build_policy("whitelist", _SessionRoleRepo({}), log),
        store=RecordStore(InMemoryRecordRepo(), log),
        event_log=log,
        lock=InMemoryRecordLock(),
        commit=commit,
    )
    asyncio.run(service.bootstrap("root"))
    asyncio.run(service.issue_record("root", h("a"), h("a.pdf")))
    assert len(commits) == 2

    with pytest.raises(UnauthorizedError):
        asyncio.run(service.issue_record("stranger", h("b"), h("b.pdf")))
    asyncio.run(service.get_record(h("a")))
    assert len(commits) == 2
