"""Demo: issue, attack, revoke and verify a credential using FastAPI TestClient.

Runs against the in-memory backend under the whitelist policy.

Run with:
    python scripts/demo_registry_flow.py
"""

from __future__ import annotations

import hashlib

from fastapi.testclient import TestClient

from registry.core.config import SETTINGS
from registry.main import app
from registry.services import token_service

OWNER = SETTINGS.bootstrap_identity
ISSUER = "registrar@uni.example"
STRANGER = "mallory@evil.example"


def _h(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def _auth(identity: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_service.create_access_token(sub=identity)}"}


def main() -> None:
    client = TestClient(app)
    record_id = _h(b"cert-1")
    file_hash = _h(b"pdf-bytes")

    # ── Step 1: owner approves an issuer ────────────────────────────
    r = client.post(
        "/v1/roles/issuer/members", json={"identity": ISSUER}, headers=_auth(OWNER)
    )
    print(f"1. POST /v1/roles/issuer/members → {r.status_code}  issuer={ISSUER}")

    # ── Step 2: issuer records a credential ─────────────────────────
    r = client.post(
        "/v1/records",
        json={"record_id": record_id, "file_hash": file_hash},
        headers=_auth(ISSUER),
    )
    print(f"2. POST /v1/records        → {r.status_code}  id={record_id[:14]}…")

    # ── Step 3: anyone verifies it ──────────────────────────────────
    r = client.get(f"/v1/records/{record_id}/verify", params={"file_hash": file_hash})
    print(f"3. GET  verify             → {r.status_code}  {r.json()}")

    # ── Step 4: a forged file does not verify ───────────────────────
    r = client.get(
        f"/v1/records/{record_id}/verify", params={"file_hash": _h(b"forged")}
    )
    print(f"4. GET  verify (forged)    → {r.status_code}  authentic={r.json()['authentic']}")

    # ── Step 5: a stranger tries to revoke ──────────────────────────
    r = client.post(f"/v1/records/{record_id}/revoke", headers=_auth(STRANGER))
    print(f"5. POST revoke (stranger)  → {r.status_code}  {r.json()['detail']}")

    # ── Step 6: the owner revokes ───────────────────────────────────
    r = client.post(f"/v1/records/{record_id}/revoke", headers=_auth(OWNER))
    print(f"6. POST revoke (owner)     → {r.status_code}  revoked={r.json()['revoked']}")

    # ── Step 7: verification now reports the revocation ─────────────
    r = client.get(f"/v1/records/{record_id}/verify", params={"file_hash": file_hash})
    print(f"7. GET  verify             → {r.status_code}  {r.json()}")

    # ── Step 8: audit trail ─────────────────────────────────────────
    for event in client.get("/v1/events").json():
        print(f"   #{event['seq']:<3} {event['name']:<22} {event['digest'][:16]}…")
    chain = client.get("/v1/events/verify").json()
    print(f"8. GET  /v1/events/verify  → intact={chain['intact']} length={chain['length']}")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
