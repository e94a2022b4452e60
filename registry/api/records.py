"""Record issuance, revocation and verification endpoints.

- POST /v1/records                      issue (issuer / faculty / department)
- POST /v1/records/institutional        issue an institution-wide record (admin)
- POST /v1/records/{record_id}/revoke   revoke (own issuer, owner or admin)
- GET  /v1/records/{record_id}          public read
- GET  /v1/records/{record_id}/verify   public authenticity + revocation check
- GET  /v1/records/{record_id}/events   public history of one record

Reads are unauthenticated on purpose: anyone holding a certificate file
must be able to check it without an account.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from registry.api.dependencies import get_registry, require_user
from registry.api.events import EventOut
from registry.models.principal import Principal
from registry.models.record import BYTES32_ZERO, Record, normalize_bytes32
from registry.services.registry_service import RegistryService

router = APIRouter(prefix="/v1/records", tags=["records"])


class RecordIssueIn(BaseModel):
    record_id: str
    file_hash: str


class RecordOut(BaseModel):
    record_id: str
    issuer: str
    file_hash: str
    issued_at: int
    revoked: bool
    exists: bool

    @staticmethod
    def from_record(record: Record) -> RecordOut:
        return RecordOut(
            record_id=record.record_id,
            issuer=record.issuer,
            file_hash=record.file_hash,
            issued_at=record.issued_at,
            revoked=record.revoked,
            exists=True,
        )

    @staticmethod
    def absent(record_id: str) -> RecordOut:
        # Unknown ids read as the zero record, flagged by exists=False.
        return RecordOut(
            record_id=record_id,
            issuer="",
            file_hash=BYTES32_ZERO,
            issued_at=0,
            revoked=False,
            exists=False,
        )


class VerificationOut(BaseModel):
    record_id: str
    file_hash: str
    authentic: bool
    revoked: bool


Registry = Annotated[RegistryService, Depends(get_registry)]
Caller = Annotated[Principal, Depends(require_user)]


@router.post("", response_model=RecordOut, status_code=status.HTTP_201_CREATED)
async def issue_record(
    body: RecordIssueIn, principal: Caller, registry: Registry
) -> RecordOut:
    record = await registry.issue_record(
        principal.identity, body.record_id, body.file_hash
    )
    return RecordOut.from_record(record)


@router.post(
    "/institutional", response_model=RecordOut, status_code=status.HTTP_201_CREATED
)
async def issue_institutional_record(
    body: RecordIssueIn, principal: Caller, registry: Registry
) -> RecordOut:
    """Same record primitive as /v1/records, reserved for admins."""
    record = await registry.issue_institutional_record(
        principal.identity, body.record_id, body.file_hash
    )
    return RecordOut.from_record(record)


@router.post("/{record_id}/revoke", response_model=RecordOut)
async def revoke_record(
    record_id: str, principal: Caller, registry: Registry
) -> RecordOut:
    record = await registry.revoke_record(principal.identity, record_id)
    return RecordOut.from_record(record)


@router.get("/{record_id}", response_model=RecordOut)
async def get_record(record_id: str, registry: Registry) -> RecordOut:
    record = await registry.get_record(record_id)
    if record is None:
        return RecordOut.absent(normalize_bytes32(record_id))
    return RecordOut.from_record(record)


@router.get("/{record_id}/verify", response_model=VerificationOut)
async def verify_record(
    record_id: str,
    file_hash: Annotated[str, Query()],
    registry: Registry,
) -> VerificationOut:
    result = await registry.verify_record(record_id, file_hash)
    return VerificationOut(
        record_id=normalize_bytes32(record_id),
        file_hash=normalize_bytes32(file_hash),
        authentic=result.authentic,
        revoked=result.revoked,
    )


@router.get("/{record_id}/events", response_model=list[EventOut])
async def record_history(record_id: str, registry: Registry) -> list[EventOut]:
    return [EventOut.from_event(e) for e in await registry.record_events(record_id)]
