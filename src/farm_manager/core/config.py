"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="PostgreSQL async connection string",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # JWT
    jwt_secret_key: str = Field(
        min_length=32,
        description="Secret key for signing access tokens (minimum 32 characters)",
    )
    jwt_refresh_secret_key: str = Field(
        min_length=32,
        description="Secret key for signing refresh tokens (minimum 32 characters)",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_token_expire_minutes: int = Field(
        default=7 * 24 * 60,
        description="Access token expiration in minutes (default 7 days)",
        gt=0,
    )
    jwt_refresh_token_expire_days: int = Field(
        default=30,
        description="Refresh token expiration in days",
        gt=0,
    )
    password_reset_expire_minutes: int = Field(
        default=60,
        description="Lifetime of a password reset token in minutes",
        gt=0,
    )

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        if self.jwt_secret_key == self.jwt_refresh_secret_key:
            msg = "jwt_refresh_secret_key must differ from jwt_secret_key"
            raise ValueError(msg)
        return self

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for rotating log files (disabled when unset)",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )
    cors_origin_regex: str = Field(
        default="",
        description="Regex pattern for allowed CORS origins",
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Deployment environment name (e.g. development, production, test)",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        description="Length of the rate limiting window in seconds",
        gt=0,
    )
    rate_limit_max_requests: int = Field(
        default=10,
        description="Maximum API requests per window per IP address",
        gt=0,
    )
    trusted_proxy_headers: str = Field(
        default="CF-Connecting-IP,X-Forwarded-For,X-Real-IP",
        description="Comma-separated list of HTTP headers to check for real client IP, in priority order",
    )

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        """Parse trusted proxy headers string into a list."""
        if not self.trusted_proxy_headers.strip():
            return []
        return [h.strip() for h in self.trusted_proxy_headers.split(",") if h.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
