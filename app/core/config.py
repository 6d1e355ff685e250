"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from app.adapters.rate_limit.base import MAX_WINDOW_SECONDS


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


KeyStrategy = Literal["ip", "user", "api_key", "composite"]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat fields as constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """HTTP server configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "0.0.0.0",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        8080,
        description="Port the HTTP server listens on",
        ge=1,
        le=65535,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration (format, destination, correlation header)."""

    level: Literal["debug", "info", "warning", "error", "critical"] = Field(
        "info",
        description="Root log level",
    )
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log lines are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )

    @field_validator("level", "format", "output", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value


class RedisSettings(BaseSettings):
    """Connection settings for the Redis time-ordered store."""

    url: str | None = Field(
        None,
        description="Full Redis URL; overrides host/port/db/password when set",
    )
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port", ge=1, le=65535)
    password: str | None = Field(None, description="Redis password")
    db: int = Field(0, description="Redis logical database", ge=0)
    pool_size: int = Field(
        10,
        description="Maximum number of pooled connections",
        ge=1,
    )
    socket_timeout_seconds: float = Field(
        3.0,
        description="Read/write timeout for a single Redis socket operation",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        5.0,
        description="Timeout for establishing a Redis connection",
        gt=0,
    )
    transactional: bool = Field(
        True,
        description=(
            "Send each decision batch as MULTI/EXEC. When false, commands are "
            "pipelined without a transaction and same-key checks may race."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )

    def connection_url(self) -> str:
        """Return the Redis URL, assembling it from parts when not given."""

        if self.url:
            return self.url
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


class RateLimitSettings(BaseSettings):
    """Rate limiting policy for the HTTP layer."""

    enabled: bool = Field(
        True,
        description="Enable request rate limiting",
    )
    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Time-ordered store backing the request log",
    )
    default_limit: int = Field(
        100,
        description="Maximum number of requests allowed per window",
        ge=1,
    )
    window_seconds: float = Field(
        3600,
        description="Sliding window size in seconds (at most one year)",
        gt=0,
        le=MAX_WINDOW_SECONDS,
        allow_inf_nan=False,
    )
    key_prefix: str = Field(
        "rate_limit:",
        description="Namespace prepended to every store key",
    )
    key_strategy: KeyStrategy = Field(
        "ip",
        description="How the caller identity is derived: ip, user, api_key or composite",
    )
    timeout_seconds: float = Field(
        5.0,
        description="Deadline for one rate limit decision round-trip",
        gt=0,
    )
    fail_open: bool = Field(
        True,
        description=(
            "When the store cannot be reached, allow the request (true) or "
            "answer 503 (false)"
        ),
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )
    local_lock: bool = Field(
        False,
        description="Serialize same-key checks inside this process",
    )
    skip_paths: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["/health", "/ready", "/ping"],
        description="Comma-separated paths that are never rate limited",
    )
    skip_internal_ips: bool = Field(
        False,
        description="Never rate limit loopback and private-range client addresses",
    )
    whitelist: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated client IPs that are never rate limited",
    )
    custom_limits: dict[str, int] = Field(
        default_factory=dict,
        description='Per-path limits as JSON, e.g. {"/v1/test": 5}',
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @field_validator("skip_paths", "whitelist", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("custom_limits")
    @classmethod
    def _positive_limits(cls, value: dict[str, int]) -> dict[str, int]:
        for path, limit in value.items():
            if limit < 1:
                raise ValueError(f"custom limit for {path!r} must be >= 1")
        return value


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
