"""Caller identity tokens (ES256 JWT).

The registry trusts exactly one thing about a caller: the `sub` of a
token whose signature, issuer, audience and expiry all check out.  That
subject is the identity recorded as issuer or revoker and looked up in
the access policy's tables.

Signing key: a P-256 private key in PEM form at TOKEN_KEY_FILE, shared
with whatever mints tokens for callers.  Without TOKEN_KEY_FILE an
ephemeral key is generated on import (dev/test only: tokens die with
the process).
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from registry.core.config import SETTINGS

logger = logging.getLogger(__name__)

ALGORITHM = "ES256"
ISSUER = "credential-registry"
AUDIENCE = "credential-registry"
ACCESS_TOKEN_TTL_MIN = 15


def load_private_key(path: str | None) -> ec.EllipticCurvePrivateKey:
    """Read a P-256 key from `path`, or generate a throwaway one for None."""
    if path is None:
        logger.warning("No TOKEN_KEY_FILE configured; using an ephemeral signing key")
        return ec.generate_private_key(ec.SECP256R1())

    key = serialization.load_pem_private_key(Path(path).read_bytes(), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError(f"TOKEN_KEY_FILE must hold a P-256 EC private key ({path})")
    return key


_private_key = load_private_key(SETTINGS.token_key_file)
_public_key = _private_key.public_key()


def create_access_token(*, sub: str, ttl_minutes: int = ACCESS_TOKEN_TTL_MIN) -> str:
    """Sign a token for `sub`.  Used by tests and the demo script."""
    now = datetime.now(UTC)
    claims = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": now,
        "exp": now + timedelta(minutes=ttl_minutes),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(claims, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    The algorithm is pinned to ES256, so alg:none and HS/ES confusion are
    rejected.  Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
