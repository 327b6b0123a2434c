from __future__ import annotations

import os
import secrets
from enum import Enum
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from newsadmin.logging import configure_logging, get_logger

logger = get_logger(__name__)


class Environment(str, Enum):
    """Deployment environments; only production hides error diagnostics."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


_DEFAULT_CORS_ORIGINS = [
    "http://localhost:3001",
    "http://localhost:5173",
]


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the admin API, bound to environment variables."""

    database_url: str = env_field(
        "postgresql://localhost:5432/newsadmin", "DATABASE_URL"
    )
    use_memory_store: bool = env_field(False, "USE_MEMORY_STORE")
    environment: Environment = env_field(Environment.DEVELOPMENT, "ENVIRONMENT")
    jwt_secret: str | None = env_field(None, "JWT_SECRET")
    jwt_issuer: str = env_field("newsadmin", "JWT_ISSUER")
    jwt_audience: str = env_field("newsadmin-clients", "JWT_AUDIENCE")
    token_ttl_days: int = env_field(
        7, "TOKEN_TTL_DAYS", description="Bearer token lifetime in days"
    )
    max_failed_logins: int = env_field(
        5,
        "MAX_FAILED_LOGINS",
        description="Consecutive failed logins before the account is locked",
    )
    lockout_minutes: int = env_field(
        120, "LOCKOUT_MINUTES", description="How long a locked account stays locked"
    )
    default_page_size: int = env_field(20, "DEFAULT_PAGE_SIZE")
    max_page_size: int = env_field(100, "MAX_PAGE_SIZE")
    bootstrap_admin: bool = env_field(
        False,
        "BOOTSTRAP_ADMIN",
        description="Ensure the default admin account exists at startup",
    )
    admin_email: str = env_field("admin@abhaya.com", "ADMIN_EMAIL")
    admin_password: str | None = env_field(None, "ADMIN_PASSWORD")
    admin_name: str = env_field("Admin User", "ADMIN_NAME")
    cors_allow_origins: list[str] = env_field(
        list(_DEFAULT_CORS_ORIGINS), "CORS_ALLOW_ORIGINS"
    )
    log_level: str = env_field("INFO", "LOG_LEVEL")
    log_dev_mode: bool = env_field(
        False, "LOG_DEV_MODE", description="Console log renderer instead of JSON"
    )

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @field_validator("environment", mode="before")
    @classmethod
    def _validate_environment(cls, value: Any) -> Environment:
        if isinstance(value, str):
            value = value.strip().lower()
        return Environment(value)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        level = str(value).strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL")
        return level

    @field_validator("token_ttl_days", "max_failed_logins", "lockout_minutes")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "Settings":
        if self.default_page_size < 1 or self.max_page_size < 1:
            raise ValueError("page sizes must be positive")
        if self.default_page_size > self.max_page_size:
            raise ValueError("DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE")
        return self

    @model_validator(mode="after")
    def _ensure_jwt_secret(self) -> "Settings":
        if self.jwt_secret:
            return self
        if self.is_production:
            raise ValueError("JWT_SECRET must be set in production")
        # Tokens signed with a generated secret do not survive a restart
        logger.warning(
            "jwt_secret_generated",
            environment=self.environment.value,
            message="JWT_SECRET unset; issued tokens are valid for this process only",
        )
        self.jwt_secret = secrets.token_urlsafe(64)
        return self


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
        configure_logging(_settings_cache)
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
