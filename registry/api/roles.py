"""Identity-table management endpoints.

Which roles exist depends on the active access policy:

  whitelist: issuer (managed by the owner); owner via PUT /v1/owner
  roles:     admin, faculty, department (managed by admins)

- GET    /v1/access                               active policy and owner
- GET    /v1/roles/{role}/members                 list members
- GET    /v1/roles/{role}/members/{identity}      membership check
- POST   /v1/roles/{role}/members                 grant (addIssuer, addFaculty, ...)
- DELETE /v1/roles/{role}/members/{identity}      revoke (removeIssuer, ...)
- PUT    /v1/owner                                transfer ownership (whitelist)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from registry.api.dependencies import get_registry, require_user
from registry.models.principal import Principal
from registry.models.role import ALL_ROLES
from registry.services.access_policy import WhitelistPolicy
from registry.services.registry_service import RegistryService

router = APIRouter(prefix="/v1", tags=["roles"])


class AccessOut(BaseModel):
    policy: str
    manageable_roles: list[str]
    owner: str | None = None


class MemberIn(BaseModel):
    identity: str


class MemberOut(BaseModel):
    identity: str
    role: str
    granted_at: int | None = None


class MembershipOut(BaseModel):
    identity: str
    role: str
    member: bool


class OwnerOut(BaseModel):
    owner: str


Registry = Annotated[RegistryService, Depends(get_registry)]
Caller = Annotated[Principal, Depends(require_user)]


def _known_role(role: str) -> str:
    if role not in ALL_ROLES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"unknown role {role!r}",
        )
    return role


@router.get("/access", response_model=AccessOut)
async def get_access(registry: Registry) -> AccessOut:
    policy = registry.policy
    owner = await policy.owner() if isinstance(policy, WhitelistPolicy) else None
    return AccessOut(
        policy=policy.kind,
        manageable_roles=sorted(policy.manageable_roles),
        owner=owner,
    )


@router.get("/roles/{role}/members", response_model=list[MemberOut])
async def list_members(role: str, registry: Registry) -> list[MemberOut]:
    members = await registry.members(_known_role(role))
    return [
        MemberOut(identity=m.identity, role=m.role, granted_at=m.granted_at)
        for m in members
    ]


@router.get("/roles/{role}/members/{identity}", response_model=MembershipOut)
async def check_member(role: str, identity: str, registry: Registry) -> MembershipOut:
    member = await registry.has_role(identity, _known_role(role))
    return MembershipOut(identity=identity, role=role, member=member)


@router.post(
    "/roles/{role}/members",
    response_model=MemberOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    role: str, body: MemberIn, principal: Caller, registry: Registry
) -> MemberOut:
    """Grant `role`.  Requires owner (whitelist) or admin (roles)."""
    added = await registry.grant_role(principal.identity, role, body.identity)
    if not added:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"identity already holds role {role!r}",
        )
    return MemberOut(identity=body.identity, role=role)


@router.delete(
    "/roles/{role}/members/{identity}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_member(
    role: str, identity: str, principal: Caller, registry: Registry
) -> None:
    """Revoke `role`.  Requires owner (whitelist) or admin (roles)."""
    removed = await registry.revoke_role(principal.identity, role, identity)
    if not removed:
        raise HTTPException(status_code=404, detail="membership not found")


@router.put("/owner", response_model=OwnerOut)
async def transfer_ownership(
    body: MemberIn, principal: Caller, registry: Registry
) -> OwnerOut:
    if not isinstance(registry.policy, WhitelistPolicy):
        raise HTTPException(
            status_code=404,
            detail=f"the {registry.policy.kind} policy has no owner",
        )
    await registry.transfer_ownership(principal.identity, body.identity)
    return OwnerOut(owner=body.identity)
