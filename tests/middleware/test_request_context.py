"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- One summary log line carrying the same ID
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.conftest import auth, h


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    """401 (no token) and 403 (policy denial) both carry the header."""
    body = {"record_id": h("r"), "file_hash": h("f")}
    resp = client.post("/v1/records", json=body)
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None

    resp = client.post("/v1/records", json=body, headers=auth("stranger"))
    assert resp.status_code == 403
    assert resp.headers.get("x-request-id") is not None


def test_summary_line_logged_with_request_id(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="registry.middleware.request_context")
    client.get("/health", headers={"X-Request-ID": "trace-me"})

    lines = [
        r
        for r in caplog.records
        if r.name == "registry.middleware.request_context"
        and getattr(r, "request_id", None) == "trace-me"
    ]
    assert len(lines) == 1
    assert lines[0].status_code == 200  # type: ignore[attr-defined]
    assert lines[0].path == "/health"  # type: ignore[attr-defined]
