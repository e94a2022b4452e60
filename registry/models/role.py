from __future__ import annotations

from dataclasses import dataclass

# Owner+Whitelist policy
ROLE_OWNER = "owner"
ROLE_ISSUER = "issuer"

# Role-based policy
ROLE_ADMIN = "admin"
ROLE_FACULTY = "faculty"
ROLE_DEPARTMENT = "department"

ALL_ROLES = frozenset(
    {ROLE_OWNER, ROLE_ISSUER, ROLE_ADMIN, ROLE_FACULTY, ROLE_DEPARTMENT}
)


@dataclass(frozen=True, slots=True)
class RoleMembership:
    identity: str
    role: str  # owner|issuer|admin|faculty|department
    granted_at: int


def is_null_identity(identity: str | None) -> bool:
    """True for the null identity: missing, blank, or an all-zero address."""
    if identity is None:
        return True
    stripped = identity.strip()
    if not stripped:
        return True
    digits = stripped[2:] if stripped.lower().startswith("0x") else stripped
    return not digits or set(digits) == {"0"}
