"""Domain errors raised by the registry service layer.

Each error is the complete outcome of a rejected call: nothing was
written and no event was emitted.  The API layer maps them to HTTP
status codes in one place (registry.api.errors).
"""

from __future__ import annotations


class RegistryError(Exception):
    """Base class; `code` is the stable machine-readable name."""

    code = "registry_error"


class UnauthorizedError(RegistryError):
    code = "unauthorized"

    def __init__(self, caller: str, action: str) -> None:
        super().__init__(f"{caller!r} is not allowed to {action}")
        self.caller = caller
        self.action = action


class RecordAlreadyExistsError(RegistryError):
    code = "already_exists"

    def __init__(self, record_id: str) -> None:
        super().__init__(f"record {record_id} already exists")
        self.record_id = record_id


class RecordNotFoundError(RegistryError):
    code = "not_found"

    def __init__(self, record_id: str) -> None:
        super().__init__(f"record {record_id} not found")
        self.record_id = record_id


class RecordAlreadyRevokedError(RegistryError):
    code = "already_revoked"

    def __init__(self, record_id: str) -> None:
        super().__init__(f"record {record_id} is already revoked")
        self.record_id = record_id


class InvalidArgumentError(RegistryError, ValueError):
    code = "invalid_argument"


class LockTimeoutError(RegistryError):
    """The per-key write lock could not be acquired in time.  Nothing was written."""

    code = "busy"

    def __init__(self, key: str) -> None:
        super().__init__(f"timed out waiting for write lock on {key}")
        self.key = key
