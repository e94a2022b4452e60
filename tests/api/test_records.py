from __future__ import annotations

from fastapi.testclient import TestClient

from registry.models.record import BYTES32_ZERO
from registry.services import token_service
from tests.conftest import BOOTSTRAP, auth, h

RID = h("cert-1")
FILE = h("pdf-bytes")


def _issue(client: TestClient, identity: str = BOOTSTRAP, record_id: str = RID, file_hash: str = FILE):
    return client.post(
        "/v1/records",
        json={"record_id": record_id, "file_hash": file_hash},
        headers=auth(identity),
    )


def _add_issuer(client: TestClient, identity: str) -> None:
    resp = client.post(
        "/v1/roles/issuer/members", json={"identity": identity}, headers=auth(BOOTSTRAP)
    )
    assert resp.status_code == 201


# ---- issue ----


def test_issue_returns_created_record(client: TestClient) -> None:
    resp = _issue(client)
    assert resp.status_code == 201
    data = resp.json()
    assert data["record_id"] == RID
    assert data["issuer"] == BOOTSTRAP
    assert data["file_hash"] == FILE
    assert data["revoked"] is False
    assert data["exists"] is True
    assert data["issued_at"] > 0


def test_issue_requires_authentication(client: TestClient) -> None:
    resp = client.post("/v1/records", json={"record_id": RID, "file_hash": FILE})
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_issue_rejects_expired_token(client: TestClient) -> None:
    token = token_service.create_access_token(sub=BOOTSTRAP, ttl_minutes=-1)
    resp = client.post(
        "/v1/records",
        json={"record_id": RID, "file_hash": FILE},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_issue_rejects_garbage_token(client: TestClient) -> None:
    resp = client.post(
        "/v1/records",
        json={"record_id": RID, "file_hash": FILE},
        headers={"Authorization": "Bearer not.a.jwt"},
    )
    assert resp.status_code == 401


def test_issue_by_non_issuer_is_forbidden(client: TestClient) -> None:
    resp = _issue(client, identity="stranger")
    assert resp.status_code == 403
    assert resp.json()["error"] == "unauthorized"
    assert client.get(f"/v1/records/{RID}").json()["exists"] is False


def test_issue_duplicate_id_conflicts(client: TestClient) -> None:
    assert _issue(client).status_code == 201
    resp = _issue(client, file_hash=h("other"))
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_exists"
    assert client.get(f"/v1/records/{RID}").json()["file_hash"] == FILE


def test_issue_malformed_id_is_unprocessable(client: TestClient) -> None:
    resp = _issue(client, record_id="cert-1")
    assert resp.status_code == 422
    assert resp.json()["error"] == "invalid_argument"


def test_issue_malformed_id_by_stranger_is_forbidden(client: TestClient) -> None:
    resp = _issue(client, identity="stranger", record_id="cert-1")
    assert resp.status_code == 403
    assert resp.json()["error"] == "unauthorized"


def test_issue_missing_field_is_unprocessable(client: TestClient) -> None:
    resp = client.post("/v1/records", json={"record_id": RID}, headers=auth(BOOTSTRAP))
    assert resp.status_code == 422


# ---- read ----


def test_get_unknown_record_reads_as_zero_record(client: TestClient) -> None:
    resp = client.get(f"/v1/records/{RID.upper().replace('0X', '0x')}")
    assert resp.status_code == 200
    assert resp.json() == {
        "record_id": RID,
        "issuer": "",
        "file_hash": BYTES32_ZERO,
        "issued_at": 0,
        "revoked": False,
        "exists": False,
    }


def test_get_malformed_id_is_unprocessable(client: TestClient) -> None:
    assert client.get("/v1/records/xyz").status_code == 422


# ---- revoke ----


def test_issuer_revokes_own_record(client: TestClient) -> None:
    _add_issuer(client, "alice")
    _issue(client, identity="alice")
    resp = client.post(f"/v1/records/{RID}/revoke", headers=auth("alice"))
    assert resp.status_code == 200
    assert resp.json()["revoked"] is True


def test_owner_revokes_any_record(client: TestClient) -> None:
    _add_issuer(client, "alice")
    _issue(client, identity="alice")
    resp = client.post(f"/v1/records/{RID}/revoke", headers=auth(BOOTSTRAP))
    assert resp.status_code == 200


def test_other_issuer_cannot_revoke(client: TestClient) -> None:
    _add_issuer(client, "alice")
    _add_issuer(client, "bob")
    _issue(client, identity="alice")
    resp = client.post(f"/v1/records/{RID}/revoke", headers=auth("bob"))
    assert resp.status_code == 403
    assert client.get(f"/v1/records/{RID}").json()["revoked"] is False


def test_revoke_twice_conflicts(client: TestClient) -> None:
    _issue(client)
    client.post(f"/v1/records/{RID}/revoke", headers=auth(BOOTSTRAP))
    resp = client.post(f"/v1/records/{RID}/revoke", headers=auth(BOOTSTRAP))
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_revoked"


def test_revoke_unknown_record_is_not_found(client: TestClient) -> None:
    resp = client.post(f"/v1/records/{RID}/revoke", headers=auth(BOOTSTRAP))
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


# ---- verify ----


def _verify(client: TestClient, file_hash: str = FILE) -> dict:
    resp = client.get(f"/v1/records/{RID}/verify", params={"file_hash": file_hash})
    assert resp.status_code == 200
    return resp.json()


def test_verify_unknown_record(client: TestClient) -> None:
    data = _verify(client)
    assert (data["authentic"], data["revoked"]) == (False, False)


def test_verify_matching_and_mismatching_hash(client: TestClient) -> None:
    _issue(client)
    assert _verify(client)["authentic"] is True
    assert _verify(client, h("tampered"))["authentic"] is False


def test_verify_reports_revocation(client: TestClient) -> None:
    _issue(client)
    client.post(f"/v1/records/{RID}/revoke", headers=auth(BOOTSTRAP))
    data = _verify(client)
    assert (data["authentic"], data["revoked"]) == (True, True)


def test_verify_echoes_normalized_values(client: TestClient) -> None:
    data = _verify(client, FILE[2:].upper())
    assert data["record_id"] == RID
    assert data["file_hash"] == FILE


def test_verify_requires_file_hash(client: TestClient) -> None:
    assert client.get(f"/v1/records/{RID}/verify").status_code == 422


def test_verify_malformed_hash_is_unprocessable(client: TestClient) -> None:
    resp = client.get(f"/v1/records/{RID}/verify", params={"file_hash": "abc"})
    assert resp.status_code == 422


# ---- history ----


def test_record_history(client: TestClient) -> None:
    _issue(client)
    client.post(f"/v1/records/{RID}/revoke", headers=auth(BOOTSTRAP))
    history = client.get(f"/v1/records/{RID}/events").json()
    assert [e["name"] for e in history] == ["RecordIssued", "RecordRevoked"]
    assert history[0]["payload"] == {"issuer": BOOTSTRAP, "file_hash": FILE}
    assert history[1]["payload"] == {"revoker": BOOTSTRAP}
