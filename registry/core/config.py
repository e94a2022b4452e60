from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

from registry.models.role import is_null_identity

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
PolicyKind = Literal["whitelist", "roles"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it's easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    access_policy: PolicyKind = "whitelist"
    bootstrap_identity: str = "registry-admin"
    lock_timeout_seconds: float = 10.0
    token_key_file: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    policy_raw = _getenv("ACCESS_POLICY", "whitelist").lower()
    bootstrap_identity = _getenv("BOOTSTRAP_IDENTITY", "registry-admin")
    lock_timeout_raw = _getenv("LOCK_TIMEOUT_SECONDS", "10")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if policy_raw not in ("whitelist", "roles"):
        raise ValueError(f"ACCESS_POLICY must be whitelist|roles (got {policy_raw!r})")

    # The bootstrap identity is the deployer: it must exist, otherwise nobody
    # could ever manage permissions.
    if not bootstrap_identity:
        raise ValueError("BOOTSTRAP_IDENTITY must be non-empty")
    if is_null_identity(bootstrap_identity):
        raise ValueError(
            f"BOOTSTRAP_IDENTITY must not be the null identity (got {bootstrap_identity!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        lock_timeout = float(lock_timeout_raw)
    except ValueError:
        raise ValueError(
            f"LOCK_TIMEOUT_SECONDS must be a number (got {lock_timeout_raw!r})"
        ) from None
    if lock_timeout <= 0:
        raise ValueError(
            f"LOCK_TIMEOUT_SECONDS must be positive (got {lock_timeout_raw!r})"
        )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    token_key_file = _getenv("TOKEN_KEY_FILE", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        access_policy=policy_raw,
        bootstrap_identity=bootstrap_identity,
        lock_timeout_seconds=lock_timeout,
        token_key_file=token_key_file,
    )


SETTINGS = load_settings()
