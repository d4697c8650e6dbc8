"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


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

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    title: str = Field(
        "Rate Limit API",
        description="Title reported in the OpenAPI document",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Request-rate limiting configuration.

    Lists are comma-separated strings so they can be supplied through plain
    environment variables (e.g. ``RATE_LIMIT_DENYLIST=10.0.0.1,10.0.0.2``).
    """

    enabled: bool = Field(
        True,
        description="Enable request-rate limiting on protected routes",
    )
    backend: str = Field(
        "redis",
        description="Counter store backend: 'redis' (shared) or 'memory' (per-process)",
    )
    window_ms: int = Field(
        3_600_000,
        description="Length of the rate limit window in milliseconds",
        ge=1,
    )
    max_requests: int = Field(
        2500,
        description="Maximum number of requests per identity per window",
        ge=1,
    )
    key_prefix: str = Field(
        "limit",
        description="Namespace prefix for counter keys in the store",
    )
    identity_header: str | None = Field(
        None,
        description="Request header holding the identity (defaults to client address)",
    )
    allowlist: str | None = Field(
        None,
        description="Comma-separated identities that are never limited",
    )
    denylist: str | None = Field(
        None,
        description="Comma-separated identities that are always rejected with 403",
    )
    throw_on_reject: bool = Field(
        False,
        description="Raise a structured error instead of responding 429 in place",
    )
    error_message: str | None = Field(
        None,
        description="Static body for 429 responses (defaults to a 'retry in ...' message)",
    )
    header_remaining: str = Field(
        "X-RateLimit-Remaining",
        description="Header carrying the remaining request count",
    )
    header_reset: str = Field(
        "X-RateLimit-Reset",
        description="Header carrying the window reset as UNIX seconds",
    )
    header_total: str = Field(
        "X-RateLimit-Limit",
        description="Header carrying the per-window request ceiling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection settings for the shared counter store."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        5.0,
        description="Per-command socket timeout in seconds",
    )
    decode_responses: bool = Field(
        True,
        description="Decode replies to str instead of bytes",
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
