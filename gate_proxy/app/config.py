"""
Configuration module for the Deleted-Account Gate Proxy.

This module uses Pydantic Settings to load and validate environment variables
for upstream API communication, the deleted-account store, logging and CORS.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import List, Optional
from urllib.parse import quote

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Only EXTERNAL_API_URL and DATABASE_URL are required; everything else
    has a default suited to local development.
    """

    # =========================================================================
    # Upstream API Configuration
    # =========================================================================

    EXTERNAL_API_URL: HttpUrl = Field(
        ...,
        description="Upstream API origin (e.g., https://api.example.com)",
    )

    API_PREFIX: str = Field(
        default="/api",
        description="Path prefix under which all proxied routes are exposed",
    )

    UPSTREAM_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Total timeout for a single upstream request",
        gt=0,
    )

    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Connect timeout for upstream requests",
        gt=0,
    )

    UPSTREAM_CURRENT_USER_PATH: str = Field(
        default="/api/user",
        description="Upstream endpoint resolving the caller's identity",
    )

    UPSTREAM_LOGOUT_PATH: str = Field(
        default="/api/logout",
        description="Upstream endpoint invalidating the current session",
    )

    UPSTREAM_ADMIN_DELETE_USER_PATH: str = Field(
        default="/api/admin/users/{user_id}",
        description="Upstream admin endpoint deleting an account by id",
    )

    # =========================================================================
    # Deleted-Account Store Configuration
    # =========================================================================

    DATABASE_URL: str = Field(
        ...,
        description="SQLAlchemy connection string for the deleted-account store",
        min_length=1,
    )

    DB_POOL_SIZE: int = Field(default=5, ge=1)
    DB_MAX_OVERFLOW: int = Field(default=10, ge=0)
    DB_POOL_RECYCLE: int = Field(default=1800, ge=-1)
    SQL_ECHO: bool = Field(default=False)

    AUTO_CREATE_SCHEMA: bool = Field(
        default=True,
        description="Create the deleted_accounts table on startup if missing",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    PROXY_HOST: str = Field(default="0.0.0.0")

    PROXY_PORT: int = Field(default=5000, ge=1, le=65535)

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    LOG_LEVEL: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def upstream_base_url(self) -> str:
        """Upstream origin as a string without trailing slash."""
        return str(self.EXTERNAL_API_URL).rstrip("/")

    @property
    def allowed_origins_list(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def database_url(self) -> str:
        return normalize_postgres_url(self.DATABASE_URL)

    def admin_delete_user_path(self, user_id: str) -> str:
        return self.UPSTREAM_ADMIN_DELETE_USER_PATH.format(user_id=quote(user_id, safe=""))

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("API_PREFIX", "UPSTREAM_CURRENT_USER_PATH", "UPSTREAM_LOGOUT_PATH")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Paths must be absolute; a trailing slash is dropped."""
        if not v.startswith("/"):
            raise ValueError(f"Path must start with '/': {v!r}")
        return v.rstrip("/") or "/"

    @field_validator("UPSTREAM_ADMIN_DELETE_USER_PATH")
    @classmethod
    def validate_admin_delete_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Path must start with '/': {v!r}")
        if "{user_id}" not in v:
            raise ValueError(
                "UPSTREAM_ADMIN_DELETE_USER_PATH must contain the '{user_id}' placeholder"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = v.upper()
        if level not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return level


def normalize_postgres_url(url: str) -> str:
    """
    Normalize postgres URLs to SQLAlchemy's psycopg driver form.

    Other URLs (sqlite for local runs and tests) are returned unchanged.
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Called during application startup; errors are logged, not raised, so the
    report is also usable from a shell.
    """
    errors = []
    warnings = []

    if settings.database_url.startswith("sqlite"):
        warnings.append("DATABASE_URL points to SQLite (not suitable for multiple workers)")

    if settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS > settings.UPSTREAM_TIMEOUT_SECONDS:
        errors.append("UPSTREAM_CONNECT_TIMEOUT_SECONDS exceeds UPSTREAM_TIMEOUT_SECONDS")

    if settings.upstream_base_url.startswith("http://") and "localhost" not in settings.upstream_base_url:
        warnings.append("EXTERNAL_API_URL is not using HTTPS (session cookies travel in clear)")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "upstream": settings.upstream_base_url,
    }
