from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from registry.core.config import SETTINGS
from registry.db.engine import async_session_factory, session_scope
from registry.models.principal import Principal
from registry.models.role import is_null_identity
from registry.repos.event_log import EventLog, InMemoryEventLog
from registry.repos.pg_event_log import PgEventLog
from registry.repos.pg_record_repo import PgRecordRepo
from registry.repos.pg_role_repo import PgRoleRepo
from registry.repos.record_repo import InMemoryRecordRepo, RecordRepo
from registry.repos.role_repo import InMemoryRoleRepo, RoleRepo
from registry.services import token_service
from registry.services.access_policy import build_policy
from registry.services.record_lock import record_lock
from registry.services.record_store import RecordStore
from registry.services.registry_service import RegistryService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Module-level repo singletons (used when DATABASE_URL is not configured)
# ---------------------------------------------------------------------------
record_repo = InMemoryRecordRepo()
event_log = InMemoryEventLog()
role_repo = InMemoryRoleRepo()

_memory_bootstrapped = False


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """Extract and validate the JWT bearer token.  Returns a Principal.

    Used as a FastAPI dependency on every mutating endpoint.
    """
    if credentials is None:
        raise _unauthenticated("Not authenticated")
    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthenticated("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthenticated("Invalid token") from None

    identity = claims["sub"]
    if not isinstance(identity, str) or is_null_identity(identity):
        logger.warning("Token with null subject rejected")
        raise _unauthenticated("Invalid token")

    principal = Principal(identity=identity, token_id=claims.get("jti"))
    logger.debug("Token validated for caller=%s", principal.identity)
    return principal


def build_registry(
    records: RecordRepo,
    events: EventLog,
    roles: RoleRepo,
    commit: Callable[[], Awaitable[None]] | None = None,
) -> RegistryService:
    policy = build_policy(SETTINGS.access_policy, roles, events)
    return RegistryService(
        policy=policy,
        store=RecordStore(records, events),
        event_log=events,
        lock=record_lock,
        commit=commit,
    )


async def bootstrap_registry() -> None:
    """Seat the configured bootstrap identity on an empty registry.

    Idempotent: does nothing once an owner/admin exists.
    """
    global _memory_bootstrapped
    if async_session_factory is None:
        service = build_registry(record_repo, event_log, role_repo)
        await service.bootstrap(SETTINGS.bootstrap_identity)
        _memory_bootstrapped = True
        return
    async with session_scope() as session:
        service = build_registry(
            PgRecordRepo(session),
            PgEventLog(session),
            PgRoleRepo(session),
            commit=session.commit,
        )
        await service.bootstrap(SETTINGS.bootstrap_identity)


async def get_registry() -> AsyncGenerator[RegistryService, None]:
    """Yield a RegistryService bound to this deployment's storage.

    PostgreSQL: one session per request.  Each write commits before its
    lock is released; a call that raises is rolled back.
    In-memory: the module-level repos above.
    """
    if async_session_factory is None:
        if not _memory_bootstrapped:
            # TestClient without a `with` block never runs the lifespan hook.
            await bootstrap_registry()
        yield build_registry(record_repo, event_log, role_repo)
        return

    async with session_scope() as session:
        yield build_registry(
            PgRecordRepo(session),
            PgEventLog(session),
            PgRoleRepo(session),
            commit=session.commit,
        )


def reset_memory_state() -> None:
    """Drop every in-memory record, role and event (tests only)."""
    global _memory_bootstrapped
    record_repo._by_id.clear()
    event_log._events.clear()
    role_repo._store.clear()
    _memory_bootstrapped = False
