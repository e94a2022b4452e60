"""Translate registry domain errors into HTTP responses.

The service layer raises; this module is the only place that knows
which status code each error becomes.  Raising (rather than returning
an error response from the endpoint) also lets the request transaction
see the exception and roll back.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from registry.services.errors import (
    InvalidArgumentError,
    LockTimeoutError,
    RecordAlreadyExistsError,
    RecordAlreadyRevokedError,
    RecordNotFoundError,
    RegistryError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[RegistryError], int] = {
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    RecordAlreadyExistsError: status.HTTP_409_CONFLICT,
    RecordAlreadyRevokedError: status.HTTP_409_CONFLICT,
    RecordNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidArgumentError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    LockTimeoutError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(error: RegistryError) -> int:
    for cls in type(error).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return status.HTTP_400_BAD_REQUEST


async def _registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    code = status_for(exc)
    if not isinstance(exc, UnauthorizedError):
        # Denials are already logged by the policy with caller and action.
        logger.warning(
            "Rejected %s %s: %s",
            request.method,
            request.url.path,
            exc,
            extra={"record_id": getattr(exc, "record_id", None)},
        )
    headers = {"Retry-After": "1"} if isinstance(exc, LockTimeoutError) else None
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": exc.code},
        headers=headers,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistryError, _registry_error_handler)  # type: ignore[arg-type]
