"""Audit events and the hash chain that seals them.

Every state change in the registry appends one event.  Events are
numbered from 1 and each carries the SHA-256 digest of its own content
plus the digest of the event before it, so editing, dropping or
reordering any past event breaks every digest after it.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass, field

GENESIS_DIGEST = "0" * 64

RECORD_ISSUED = "RecordIssued"
RECORD_REVOKED = "RecordRevoked"
ROLE_GRANTED = "RoleGranted"
ROLE_REVOKED = "RoleRevoked"
OWNERSHIP_TRANSFERRED = "OwnershipTransferred"


@dataclass(frozen=True, slots=True)
class PendingEvent:
    """An event that has been emitted but not yet sealed into the log."""

    name: str
    timestamp: int
    record_id: str | None = None
    payload: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RegistryEvent:
    seq: int
    name: str
    timestamp: int
    record_id: str | None
    payload: dict[str, object]
    prev_digest: str
    digest: str


def record_issued(
    *, record_id: str, issuer: str, file_hash: str, timestamp: int
) -> PendingEvent:
    return PendingEvent(
        name=RECORD_ISSUED,
        timestamp=timestamp,
        record_id=record_id,
        payload={"issuer": issuer, "file_hash": file_hash},
    )


def record_revoked(*, record_id: str, revoker: str, timestamp: int) -> PendingEvent:
    return PendingEvent(
        name=RECORD_REVOKED,
        timestamp=timestamp,
        record_id=record_id,
        payload={"revoker": revoker},
    )


def role_granted(*, role: str, identity: str, sender: str, timestamp: int) -> PendingEvent:
    return PendingEvent(
        name=ROLE_GRANTED,
        timestamp=timestamp,
        payload={"role": role, "identity": identity, "sender": sender},
    )


def role_revoked(*, role: str, identity: str, sender: str, timestamp: int) -> PendingEvent:
    return PendingEvent(
        name=ROLE_REVOKED,
        timestamp=timestamp,
        payload={"role": role, "identity": identity, "sender": sender},
    )


def ownership_transferred(
    *, previous_owner: str | None, new_owner: str, timestamp: int
) -> PendingEvent:
    return PendingEvent(
        name=OWNERSHIP_TRANSFERRED,
        timestamp=timestamp,
        payload={"previous_owner": previous_owner, "new_owner": new_owner},
    )


def chain_digest(
    *,
    seq: int,
    prev_digest: str,
    name: str,
    timestamp: int,
    record_id: str | None,
    payload: dict[str, object],
) -> str:
    # Canonical JSON: sorted keys, no whitespace.  Any change here
    # invalidates every stored chain, so treat the layout as frozen.
    body = json.dumps(
        {
            "seq": seq,
            "prev": prev_digest,
            "name": name,
            "timestamp": timestamp,
            "record_id": record_id,
            "payload": payload,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def seal(pending: PendingEvent, *, seq: int, prev_digest: str) -> RegistryEvent:
    """Turn a pending event into the log entry that follows `prev_digest`."""
    digest = chain_digest(
        seq=seq,
        prev_digest=prev_digest,
        name=pending.name,
        timestamp=pending.timestamp,
        record_id=pending.record_id,
        payload=pending.payload,
    )
    return RegistryEvent(
        seq=seq,
        name=pending.name,
        timestamp=pending.timestamp,
        record_id=pending.record_id,
        payload=dict(pending.payload),
        prev_digest=prev_digest,
        digest=digest,
    )


def first_broken_link(events: Iterable[RegistryEvent]) -> int | None:
    """Walk the chain in order; return the seq of the first bad event.

    Returns None when every event links to its predecessor and its stored
    digest matches its content.
    """
    expected_prev = GENESIS_DIGEST
    expected_seq = 1
    for event in events:
        if event.seq != expected_seq or event.prev_digest != expected_prev:
            return event.seq
        recomputed = chain_digest(
            seq=event.seq,
            prev_digest=event.prev_digest,
            name=event.name,
            timestamp=event.timestamp,
            record_id=event.record_id,
            payload=event.payload,
        )
        if recomputed != event.digest:
            return event.seq
        expected_prev = event.digest
        expected_seq += 1
    return None
