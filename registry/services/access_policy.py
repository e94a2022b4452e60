"""Access policies: who may issue, revoke, and manage permissions.

Two interchangeable policies share one interface of four predicates:

  can_issue(caller)                 ordinary issuance
  can_issue_institutional(caller)   institution-wide reports
  can_revoke(caller, issuer)        revocation of a record issued by `issuer`
  can_manage_roles(caller)          changes to the policy's own tables

WhitelistPolicy: one owner manages a flat set of approved issuers.  The
owner and a record's own issuer may revoke it.  There is no
institutional path.

RolePolicy: admin / faculty / department roles.  Faculty and department
members issue; admins issue institutional records, revoke anything, and
manage every role including their own.

Both policies own their identity tables and record every change to them
in the audit event log.  A policy never touches records.
"""

from __future__ import annotations

import logging
from typing import Protocol

from registry.core.metrics import AUTHZ_DENIALS, ROLE_CHANGES
from registry.models import event as events
from registry.models.role import (
    ROLE_ADMIN,
    ROLE_DEPARTMENT,
    ROLE_FACULTY,
    ROLE_ISSUER,
    ROLE_OWNER,
    RoleMembership,
    is_null_identity,
)
from registry.repos.event_log import EventLog
from registry.repos.role_repo import RoleRepo
from registry.services.errors import InvalidArgumentError, UnauthorizedError

logger = logging.getLogger(__name__)


def denied(caller: str, action: str) -> UnauthorizedError:
    """Log and count a rejected call; return the error for the caller to raise."""
    AUTHZ_DENIALS.labels(action=action).inc()
    logger.warning(
        "Access denied: caller=%s action=%s",
        caller,
        action,
        extra={"caller": caller, "action": action},
    )
    return UnauthorizedError(caller, action)


class AccessPolicy(Protocol):
    kind: str
    manageable_roles: frozenset[str]

    async def can_issue(self, caller: str) -> bool: ...
    async def can_issue_institutional(self, caller: str) -> bool: ...
    async def can_revoke(self, caller: str, issuer: str) -> bool: ...
    async def can_manage_roles(self, caller: str) -> bool: ...

    async def bootstrap(self, identity: str, *, now: int) -> bool: ...
    async def has_role(self, identity: str, role: str) -> bool: ...
    async def members(self, role: str) -> list[RoleMembership]: ...
    async def grant(self, caller: str, role: str, identity: str, *, now: int) -> bool: ...
    async def revoke(self, caller: str, role: str, identity: str, *, now: int) -> bool: ...


class _PolicyBase:
    kind = "base"
    manageable_roles: frozenset[str] = frozenset()

    def __init__(self, roles: RoleRepo, event_log: EventLog) -> None:
        self._roles = roles
        self._events = event_log

    async def can_manage_roles(self, caller: str) -> bool:
        raise NotImplementedError

    async def has_role(self, identity: str, role: str) -> bool:
        return await self._roles.has_role(identity, role)

    async def members(self, role: str) -> list[RoleMembership]:
        return await self._roles.list_by_role(role)

    async def grant(self, caller: str, role: str, identity: str, *, now: int) -> bool:
        """Grant `role` to `identity`.  False if it already held the role."""
        await self._check_change(caller, role, identity, action=f"grant {role}")
        return await self._grant(role, identity, sender=caller, now=now)

    async def revoke(self, caller: str, role: str, identity: str, *, now: int) -> bool:
        """Take `role` from `identity`.  False if it did not hold the role."""
        await self._check_change(caller, role, identity, action=f"revoke {role}")
        return await self._revoke(role, identity, sender=caller, now=now)

    async def _check_change(
        self, caller: str, role: str, identity: str, *, action: str
    ) -> None:
        if not await self.can_manage_roles(caller):
            raise denied(caller, action)
        if role not in self.manageable_roles:
            raise InvalidArgumentError(
                f"role {role!r} is not managed by the {self.kind} policy"
            )
        if is_null_identity(identity):
            raise InvalidArgumentError("identity must not be the null identity")

    async def _grant(self, role: str, identity: str, *, sender: str, now: int) -> bool:
        added = await self._roles.grant(
            RoleMembership(identity=identity, role=role, granted_at=now)
        )
        if added:
            await self._events.append(
                events.role_granted(
                    role=role, identity=identity, sender=sender, timestamp=now
                )
            )
            ROLE_CHANGES.labels(role=role, change="granted").inc()
            logger.info(
                "Role granted role=%s identity=%s by=%s",
                role,
                identity,
                sender,
                extra={"caller": sender},
            )
        return added

    async def _revoke(self, role: str, identity: str, *, sender: str, now: int) -> bool:
        removed = await self._roles.revoke(identity, role)
        if removed:
            await self._events.append(
                events.role_revoked(
                    role=role, identity=identity, sender=sender, timestamp=now
                )
            )
            ROLE_CHANGES.labels(role=role, change="revoked").inc()
            logger.info(
                "Role revoked role=%s identity=%s by=%s",
                role,
                identity,
                sender,
                extra={"caller": sender},
            )
        return removed


class WhitelistPolicy(_PolicyBase):
    kind = "whitelist"
    manageable_roles = frozenset({ROLE_ISSUER})

    async def owner(self) -> str | None:
        owners = await self._roles.list_by_role(ROLE_OWNER)
        return owners[0].identity if owners else None

    async def can_issue(self, caller: str) -> bool:
        return await self._roles.has_role(caller, ROLE_ISSUER)

    async def can_issue_institutional(self, caller: str) -> bool:
        return False

    async def can_revoke(self, caller: str, issuer: str) -> bool:
        return caller == issuer or caller == await self.owner()

    async def can_manage_roles(self, caller: str) -> bool:
        return await self._roles.has_role(caller, ROLE_OWNER)

    async def bootstrap(self, identity: str, *, now: int) -> bool:
        """Make `identity` owner and issuer of an empty registry.

        No-op once an owner exists.
        """
        if await self.owner() is not None:
            return False
        await self._roles.grant(
            RoleMembership(identity=identity, role=ROLE_OWNER, granted_at=now)
        )
        await self._events.append(
            events.ownership_transferred(
                previous_owner=None, new_owner=identity, timestamp=now
            )
        )
        await self._grant(ROLE_ISSUER, identity, sender=identity, now=now)
        logger.info("Registry bootstrapped policy=whitelist owner=%s", identity)
        return True

    async def add_issuer(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.grant(caller, ROLE_ISSUER, identity, now=now)

    async def remove_issuer(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.revoke(caller, ROLE_ISSUER, identity, now=now)

    async def transfer_ownership(self, caller: str, new_owner: str, *, now: int) -> bool:
        """Hand the owner seat to `new_owner`.  False if it already holds it."""
        current = await self.owner()
        if current is None or caller != current:
            raise denied(caller, "transfer ownership")
        if is_null_identity(new_owner):
            raise InvalidArgumentError("new owner must not be the null identity")
        if new_owner == current:
            return False

        await self._roles.revoke(current, ROLE_OWNER)
        await self._roles.grant(
            RoleMembership(identity=new_owner, role=ROLE_OWNER, granted_at=now)
        )
        await self._events.append(
            events.ownership_transferred(
                previous_owner=current, new_owner=new_owner, timestamp=now
            )
        )
        ROLE_CHANGES.labels(role=ROLE_OWNER, change="granted").inc()
        logger.info(
            "Ownership transferred from=%s to=%s",
            current,
            new_owner,
            extra={"caller": caller},
        )
        return True


class RolePolicy(_PolicyBase):
    kind = "roles"
    manageable_roles = frozenset({ROLE_ADMIN, ROLE_FACULTY, ROLE_DEPARTMENT})

    async def can_issue(self, caller: str) -> bool:
        return await self._roles.has_role(
            caller, ROLE_FACULTY
        ) or await self._roles.has_role(caller, ROLE_DEPARTMENT)

    async def can_issue_institutional(self, caller: str) -> bool:
        return await self._roles.has_role(caller, ROLE_ADMIN)

    async def can_revoke(self, caller: str, issuer: str) -> bool:
        return caller == issuer or await self._roles.has_role(caller, ROLE_ADMIN)

    async def can_manage_roles(self, caller: str) -> bool:
        return await self._roles.has_role(caller, ROLE_ADMIN)

    async def bootstrap(self, identity: str, *, now: int) -> bool:
        """Make `identity` the first admin.  No-op once any admin exists."""
        if await self._roles.count(ROLE_ADMIN) > 0:
            return False
        await self._grant(ROLE_ADMIN, identity, sender=identity, now=now)
        logger.info("Registry bootstrapped policy=roles admin=%s", identity)
        return True

    async def revoke(self, caller: str, role: str, identity: str, *, now: int) -> bool:
        await self._check_change(caller, role, identity, action=f"revoke {role}")
        if (
            role == ROLE_ADMIN
            and await self._roles.has_role(identity, ROLE_ADMIN)
            and await self._roles.count(ROLE_ADMIN) <= 1
        ):
            # Otherwise nobody could ever manage roles again.
            raise InvalidArgumentError("cannot remove the last admin")
        return await self._revoke(role, identity, sender=caller, now=now)

    async def add_admin(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.grant(caller, ROLE_ADMIN, identity, now=now)

    async def remove_admin(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.revoke(caller, ROLE_ADMIN, identity, now=now)

    async def add_faculty(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.grant(caller, ROLE_FACULTY, identity, now=now)

    async def remove_faculty(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.revoke(caller, ROLE_FACULTY, identity, now=now)

    async def add_department(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.grant(caller, ROLE_DEPARTMENT, identity, now=now)

    async def remove_department(self, caller: str, identity: str, *, now: int) -> bool:
        return await self.revoke(caller, ROLE_DEPARTMENT, identity, now=now)


def build_policy(kind: str, roles: RoleRepo, event_log: EventLog) -> AccessPolicy:
    if kind == "whitelist":
        return WhitelistPolicy(roles, event_log)
    if kind == "roles":
        return RolePolicy(roles, event_log)
    raise ValueError(f"unknown access policy {kind!r}")
