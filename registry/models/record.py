from __future__ import annotations

import re
from dataclasses import dataclass

# Record ids and file hashes are opaque 32-byte values, carried as
# 0x-prefixed lowercase hex so they round-trip unchanged through JSON.
BYTES32_ZERO = "0x" + "00" * 32

_BYTES32_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def normalize_bytes32(value: str) -> str:
    """Return `value` as canonical 0x-prefixed lowercase hex.

    Raises ValueError when `value` is not exactly 32 bytes of hex.
    """
    if not isinstance(value, str) or not _BYTES32_RE.match(value.strip()):
        raise ValueError(f"expected 32 bytes of hex, got {value!r}")
    digits = value.strip().lower()
    if digits.startswith("0x"):
        digits = digits[2:]
    return "0x" + digits


@dataclass(frozen=True, slots=True)
class Record:
    """Proof of one issued credential.

    Every field except `revoked` is write-once; `revoked` only ever moves
    from False to True.  Repos hand out these frozen copies, never a
    mutable handle.
    """

    record_id: str
    issuer: str
    file_hash: str
    issued_at: int
    revoked: bool = False

    @staticmethod
    def new(*, record_id: str, issuer: str, file_hash: str, issued_at: int) -> Record:
        return Record(
            record_id=record_id,
            issuer=issuer,
            file_hash=file_hash,
            issued_at=issued_at,
            revoked=False,
        )


@dataclass(frozen=True, slots=True)
class Verification:
    authentic: bool
    revoked: bool


NOT_VERIFIED = Verification(authentic=False, revoked=False)
