"""Application configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class AppConfig:
    """Runtime configuration for billing, identity and persistence."""

    stripe_secret_key: str
    stripe_webhook_secret: str
    app_base_url: str
    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_connect_timeout: float
    auth_jwt_secret: str
    auth_jwt_algorithm: str
    auth_jwt_audience: Optional[str]
    session_cookie_name: str
    cookie_secure: bool
    product_cache_ttl_seconds: int
    default_trial_days: int

    @property
    def checkout_success_url(self) -> str:
        return f"{self.app_base_url}/billing/success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def checkout_cancel_url(self) -> str:
        return f"{self.app_base_url}/billing/canceled"

    @property
    def portal_return_url(self) -> str:
        return f"{self.app_base_url}/billing"

    @property
    def db_config(self) -> Dict[str, Any]:
        """Keyword arguments accepted by :func:`asyncpg.create_pool`."""

        return {
            "host": self.db_host,
            "port": self.db_port,
            "database": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Expected boolean value, got {value!r}")


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def load_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load :class:`AppConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    connect_timeout = _to_float(env_mapping.get("DB_CONNECT_TIMEOUT"), default=5.0)
    if connect_timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")

    cache_ttl = _to_int(env_mapping.get("PRODUCT_CACHE_TTL_SECONDS"), default=300)
    if cache_ttl < 0:
        raise ValueError("PRODUCT_CACHE_TTL_SECONDS must be non-negative")

    audience = env_mapping.get("AUTH_JWT_AUDIENCE", "authenticated").strip()

    return AppConfig(
        stripe_secret_key=env_mapping.get("STRIPE_SECRET_KEY", "").strip(),
        stripe_webhook_secret=env_mapping.get("STRIPE_WEBHOOK_SECRET", "").strip(),
        app_base_url=env_mapping.get("APP_BASE_URL", "http://localhost:3000").rstrip("/"),
        db_host=env_mapping.get("DB_HOST", "127.0.0.1"),
        db_port=_to_int(env_mapping.get("DB_PORT"), default=5432),
        db_name=env_mapping.get("DB_NAME", "tint_crm"),
        db_user=env_mapping.get("DB_USER", "tint_crm"),
        db_password=env_mapping.get("DB_PASSWORD", "tint_crm"),
        db_connect_timeout=connect_timeout,
        auth_jwt_secret=env_mapping.get("AUTH_JWT_SECRET", "dev-secret-change-me"),
        auth_jwt_algorithm=env_mapping.get("AUTH_JWT_ALGORITHM", "HS256"),
        auth_jwt_audience=audience or None,
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME", "session"),
        cookie_secure=_to_bool(env_mapping.get("COOKIE_SECURE"), default=False),
        product_cache_ttl_seconds=cache_ttl,
        default_trial_days=max(0, _to_int(env_mapping.get("DEFAULT_TRIAL_DAYS"), default=14)),
    )
