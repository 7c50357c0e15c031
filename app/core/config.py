"""Configuration module for the billing ledger service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from app.core.exceptions import ConfigurationError

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        return Decimal(raw.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ConfigurationError(f"{name} must be a decimal number.") from exc


def _as_int(name: str, default: str) -> int:
    try:
        return int(os.getenv(name, default).strip())
    except (ValueError, AttributeError) as exc:
        raise ConfigurationError(f"{name} must be an integer.") from exc


def _as_float(name: str, default: str) -> float:
    try:
        return float(os.getenv(name, default).strip())
    except (ValueError, AttributeError) as exc:
        raise ConfigurationError(f"{name} must be a number.") from exc


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    JWT_SECRET: str
    JWT_ACCESS_TTL_MINUTES: int
    DEFAULT_FEE_PERCENTAGE: Decimal
    INVOICE_DUE_DAYS: int
    DUE_SOON_DAYS: int
    LOCK_TIMEOUT_SECONDS: float
    CYCLE_MAX_RETRIES: int
    CYCLE_RETRY_BACKOFF_SECONDS: float
    CELERY_BROKER_URL: str
    CELERY_RESULT_BACKEND: str
    CELERY_TASK_ALWAYS_EAGER: bool
    BILLING_TICK_HOUR: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=(resolved_env != "production"))
    broker_url = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))

    config = Config(
        APP_NAME="Success Fee Ledger",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./fee_ledger.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        JWT_SECRET=os.getenv("JWT_SECRET", "change_me_jwt_secret"),
        JWT_ACCESS_TTL_MINUTES=_as_int("JWT_ACCESS_TTL_MINUTES", "60"),
        DEFAULT_FEE_PERCENTAGE=_as_decimal("DEFAULT_FEE_PERCENTAGE", "5.00"),
        INVOICE_DUE_DAYS=_as_int("INVOICE_DUE_DAYS", "15"),
        DUE_SOON_DAYS=_as_int("DUE_SOON_DAYS", "7"),
        LOCK_TIMEOUT_SECONDS=_as_float("LOCK_TIMEOUT_SECONDS", "5"),
        CYCLE_MAX_RETRIES=_as_int("CYCLE_MAX_RETRIES", "2"),
        CYCLE_RETRY_BACKOFF_SECONDS=_as_float("CYCLE_RETRY_BACKOFF_SECONDS", "0.25"),
        CELERY_BROKER_URL=broker_url,
        CELERY_RESULT_BACKEND=os.getenv("CELERY_RESULT_BACKEND", broker_url),
        CELERY_TASK_ALWAYS_EAGER=_as_bool(os.getenv("CELERY_TASK_ALWAYS_EAGER"), default=False),
        BILLING_TICK_HOUR=_as_int("BILLING_TICK_HOUR", "1"),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2", "postgresql+psycopg"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if not config.DEFAULT_FEE_PERCENTAGE.is_finite():
        raise ConfigurationError("DEFAULT_FEE_PERCENTAGE must be finite.")
    if not Decimal("0") <= config.DEFAULT_FEE_PERCENTAGE <= Decimal("100"):
        raise ConfigurationError("DEFAULT_FEE_PERCENTAGE must be between 0 and 100.")
    if config.INVOICE_DUE_DAYS < 0:
        raise ConfigurationError("INVOICE_DUE_DAYS must be >= 0.")
    if config.DUE_SOON_DAYS < 0:
        raise ConfigurationError("DUE_SOON_DAYS must be >= 0.")
    if config.LOCK_TIMEOUT_SECONDS <= 0:
        raise ConfigurationError("LOCK_TIMEOUT_SECONDS must be > 0.")
    if config.CYCLE_MAX_RETRIES < 0:
        raise ConfigurationError("CYCLE_MAX_RETRIES must be >= 0.")
    if config.CYCLE_RETRY_BACKOFF_SECONDS < 0:
        raise ConfigurationError("CYCLE_RETRY_BACKOFF_SECONDS must be >= 0.")
    if not 0 <= config.BILLING_TICK_HOUR <= 23:
        raise ConfigurationError("BILLING_TICK_HOUR must be between 0 and 23.")
    if config.JWT_ACCESS_TTL_MINUTES < 1:
        raise ConfigurationError("JWT_ACCESS_TTL_MINUTES must be >= 1.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and "change_me" in config.JWT_SECRET.lower():
        raise ConfigurationError("Production JWT_SECRET uses the placeholder value.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
