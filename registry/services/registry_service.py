"""Registry entry points.

Every mutating call follows the same shape:

  1. take the write lock for the key being changed
  2. ask the access policy whether `caller` may do this
  3. only then touch the record store or the identity tables
  4. commit, still holding the lock

The lock is released only after the unit of work has committed, so the
next writer on the same key always reads what the previous one wrote.
Issuance asks the policy before validating its arguments, so a caller
without issue rights gets Unauthorized whatever it sends.  Reads skip
the lock entirely.

The service is built per request around whichever repositories back
this deployment (in-memory or PostgreSQL); it keeps no state of its own.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from registry.core.metrics import RECORD_OPERATIONS
from registry.models.event import GENESIS_DIGEST, RegistryEvent, first_broken_link
from registry.models.record import Record, Verification, normalize_bytes32
from registry.models.role import ROLE_DEPARTMENT, ROLE_FACULTY, ROLE_ISSUER, RoleMembership
from registry.repos.event_log import EventLog
from registry.services.access_policy import AccessPolicy, WhitelistPolicy, denied
from registry.services.errors import (
    InvalidArgumentError,
    RecordNotFoundError,
    RegistryError,
)
from registry.services.record_lock import RecordLock
from registry.services.record_store import RecordStore

logger = logging.getLogger(__name__)

ROLES_LOCK_KEY = "roles"
_CHAIN_PAGE = 500


def unix_now() -> int:
    return int(time.time())


def _bytes32(value: str, field: str) -> str:
    try:
        return normalize_bytes32(value)
    except ValueError:
        raise InvalidArgumentError(f"{field} must be 32 bytes of hex") from None


@dataclass(frozen=True, slots=True)
class ChainStatus:
    length: int
    head_digest: str
    intact: bool
    first_broken_seq: int | None = None


class RegistryService:
    def __init__(
        self,
        *,
        policy: AccessPolicy,
        store: RecordStore,
        event_log: EventLog,
        lock: RecordLock,
        clock: Callable[[], int] = unix_now,
        commit: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.policy = policy
        self._store = store
        self._events = event_log
        self._lock = lock
        self._clock = clock
        # PostgreSQL: the request session's commit.  In memory every write
        # is already final, so there is nothing to do.
        self._commit = commit

    async def _finish(self) -> None:
        if self._commit is not None:
            await self._commit()

    # ------------------------------------------------------------------
    # Record lifecycle
    # ------------------------------------------------------------------

    async def issue_record(self, caller: str, record_id: str, file_hash: str) -> Record:
        return await self._issue("issue", caller, record_id, file_hash)

    async def issue_institutional_record(
        self, caller: str, record_id: str, file_hash: str
    ) -> Record:
        return await self._issue("issue_institutional", caller, record_id, file_hash)

    async def _issue(
        self, operation: str, caller: str, record_id: str, file_hash: str
    ) -> Record:
        try:
            if operation == "issue_institutional":
                allowed = await self.policy.can_issue_institutional(caller)
            else:
                allowed = await self.policy.can_issue(caller)
            if not allowed:
                raise denied(caller, operation)
            rid = _bytes32(record_id, "record_id")
            fh = _bytes32(file_hash, "file_hash")
            async with self._lock.hold(f"record:{rid}"):
                record = await self._store.issue(
                    record_id=rid, issuer=caller, file_hash=fh, now=self._clock()
                )
                await self._finish()
        except RegistryError as e:
            RECORD_OPERATIONS.labels(operation=operation, outcome=e.code).inc()
            raise
        RECORD_OPERATIONS.labels(operation=operation, outcome="ok").inc()
        return record

    async def revoke_record(self, caller: str, record_id: str) -> Record:
        try:
            rid = _bytes32(record_id, "record_id")
            async with self._lock.hold(f"record:{rid}"):
                existing = await self._store.get(rid)
                if existing is None:
                    raise RecordNotFoundError(rid)
                if not await self.policy.can_revoke(caller, existing.issuer):
                    raise denied(caller, "revoke")
                record = await self._store.revoke(
                    record_id=rid, caller=caller, now=self._clock()
                )
                await self._finish()
        except RegistryError as e:
            RECORD_OPERATIONS.labels(operation="revoke", outcome=e.code).inc()
            raise
        RECORD_OPERATIONS.labels(operation="revoke", outcome="ok").inc()
        return record

    async def get_record(self, record_id: str) -> Record | None:
        return await self._store.get(_bytes32(record_id, "record_id"))

    async def verify_record(self, record_id: str, file_hash: str) -> Verification:
        return await self._store.verify(
            _bytes32(record_id, "record_id"), _bytes32(file_hash, "file_hash")
        )

    # ------------------------------------------------------------------
    # Identity tables
    # ------------------------------------------------------------------

    async def bootstrap(self, identity: str) -> bool:
        async with self._lock.hold(ROLES_LOCK_KEY):
            changed = await self.policy.bootstrap(identity, now=self._clock())
            await self._finish()
            return changed

    async def grant_role(self, caller: str, role: str, identity: str) -> bool:
        async with self._lock.hold(ROLES_LOCK_KEY):
            changed = await self.policy.grant(caller, role, identity, now=self._clock())
            await self._finish()
            return changed

    async def revoke_role(self, caller: str, role: str, identity: str) -> bool:
        async with self._lock.hold(ROLES_LOCK_KEY):
            changed = await self.policy.revoke(caller, role, identity, now=self._clock())
            await self._finish()
            return changed

    async def add_issuer(self, caller: str, identity: str) -> bool:
        return await self.grant_role(caller, ROLE_ISSUER, identity)

    async def remove_issuer(self, caller: str, identity: str) -> bool:
        return await self.revoke_role(caller, ROLE_ISSUER, identity)

    async def add_faculty(self, caller: str, identity: str) -> bool:
        return await self.grant_role(caller, ROLE_FACULTY, identity)

    async def add_department(self, caller: str, identity: str) -> bool:
        return await self.grant_role(caller, ROLE_DEPARTMENT, identity)

    async def transfer_ownership(self, caller: str, new_owner: str) -> bool:
        if not isinstance(self.policy, WhitelistPolicy):
            raise InvalidArgumentError(
                f"the {self.policy.kind} policy has no transferable owner"
            )
        async with self._lock.hold(ROLES_LOCK_KEY):
            changed = await self.policy.transfer_ownership(
                caller, new_owner, now=self._clock()
            )
            await self._finish()
            return changed

    async def has_role(self, identity: str, role: str) -> bool:
        return await self.policy.has_role(identity, role)

    async def members(self, role: str) -> list[RoleMembership]:
        return await self.policy.members(role)

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    async def list_events(self, after_seq: int = 0, limit: int = 100) -> list[RegistryEvent]:
        if after_seq < 0 or limit <= 0:
            raise InvalidArgumentError("after must be >= 0 and limit must be > 0")
        return await self._events.list_after(after_seq, limit)

    async def record_events(self, record_id: str) -> list[RegistryEvent]:
        return await self._events.list_for_record(_bytes32(record_id, "record_id"))

    async def verify_event_chain(self) -> ChainStatus:
        """Re-hash the whole log and report the first event that doesn't fit."""
        chain: list[RegistryEvent] = []
        after = 0
        while True:
            page = await self._events.list_after(after, _CHAIN_PAGE)
            chain.extend(page)
            if len(page) < _CHAIN_PAGE:
                break
            after = page[-1].seq

        broken = first_broken_link(chain)
        if broken is not None:
            logger.error("Event chain broken at seq=%d", broken)
        return ChainStatus(
            length=len(chain),
            head_digest=chain[-1].digest if chain else GENESIS_DIGEST,
            intact=broken is None,
            first_broken_seq=broken,
        )
