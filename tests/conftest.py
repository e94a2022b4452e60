from __future__ import annotations

import hashlib
import sys
from dataclasses import replace
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from registry.api import dependencies
from registry.main import app
from registry.services import token_service

# Ensure repo root is on sys.path so `import registry` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

BOOTSTRAP = dependencies.SETTINGS.bootstrap_identity


@pytest.fixture(autouse=True)
def reset_registry_state() -> None:
    """Start every test from an empty, un-bootstrapped registry."""
    dependencies.reset_memory_state()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def roles_policy(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run the API under the role-based policy instead of the whitelist."""
    monkeypatch.setattr(
        dependencies, "SETTINGS", replace(dependencies.SETTINGS, access_policy="roles")
    )


def mint_token(identity: str = "test-user") -> str:
    """Create a valid ES256 JWT for `identity`."""
    return token_service.create_access_token(sub=identity)


def auth(identity: str | None) -> dict[str, str]:
    """Bearer header for `identity`, or no header at all for None."""
    if identity is None:
        return {}
    return {"Authorization": f"Bearer {mint_token(identity)}"}


def h(text: str) -> str:
    """Deterministic bytes32 value for test ids and file hashes."""
    return "0x" + hashlib.sha256(text.encode()).hexdigest()
