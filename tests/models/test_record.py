from __future__ import annotations

import pytest

from registry.models.record import BYTES32_ZERO, Record, normalize_bytes32
from registry.models.role import is_null_identity


def test_normalize_adds_prefix_and_lowercases() -> None:
    raw = "AB" * 32
    assert normalize_bytes32(raw) == "0x" + "ab" * 32
    assert normalize_bytes32("0x" + raw) == "0x" + "ab" * 32


def test_normalize_strips_whitespace() -> None:
    assert normalize_bytes32("  0x" + "01" * 32 + " ") == "0x" + "01" * 32


def test_zero_value_is_valid_bytes32() -> None:
    assert normalize_bytes32(BYTES32_ZERO) == BYTES32_ZERO


@pytest.mark.parametrize(
    "value",
    ["", "0x", "0x1234", "zz" * 32, "0x" + "ab" * 33, "ab" * 31],
)
def test_normalize_rejects_malformed(value: str) -> None:
    with pytest.raises(ValueError, match="32 bytes of hex"):
        normalize_bytes32(value)


def test_new_record_is_not_revoked() -> None:
    record = Record.new(record_id="0x01", issuer="alice", file_hash="0x02", issued_at=7)
    assert record.revoked is False
    assert record.issued_at == 7


def test_record_is_frozen() -> None:
    record = Record.new(record_id="0x01", issuer="alice", file_hash="0x02", issued_at=7)
    with pytest.raises(AttributeError):
        record.revoked = True  # type: ignore[misc]


@pytest.mark.parametrize(
    "identity", [None, "", "   ", "0x", "0", "0x0000000000000000000000000000000000000000"]
)
def test_null_identities(identity: str | None) -> None:
    assert is_null_identity(identity) is True


@pytest.mark.parametrize("identity", ["alice", "0x01", "registry-admin", "0x00a0"])
def test_real_identities(identity: str) -> None:
    assert is_null_identity(identity) is False
