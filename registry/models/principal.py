from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system.

    identity: the token subject; this is the identity the registry
              records as issuer/revoker and checks against its own
              identity tables.
    token_id: the token's jti, logged for correlation only.

    Role claims inside the token are deliberately not carried here:
    who may issue or revoke is decided by the registry's identity tables,
    never by whatever the token minter chose to assert.
    """

    identity: str
    token_id: str | None = None
