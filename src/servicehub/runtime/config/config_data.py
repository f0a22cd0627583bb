"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field, computed_field

GOOGLE_ISSUERS = ["https://accounts.google.com", "accounts.google.com"]


class CORSConfig(BaseModel):
    """CORS configuration for the application."""

    origins: list[str] = Field(
        default=["http://localhost:4321", "http://localhost:3000"]
    )
    allow_credentials: bool = True
    allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allow_headers: list[str] = Field(default=["*"])


class JWTConfig(BaseModel):
    """Settings for the access tokens this service issues."""

    secret_key: str | None = Field(
        default=None, description="Symmetric secret used to sign access tokens"
    )
    issuer: str | None = Field(default=None, description="Issuer (iss) claim")
    audience: str | None = Field(default=None, description="Audience (aud) claim")
    expiration_minutes: int = Field(
        default=60, description="Access token lifetime in minutes"
    )
    refresh_token_expiry_days: int = Field(
        default=7, description="Refresh token lifetime in days"
    )
    algorithm: Literal["HS256"] = Field(
        default="HS256", description="Signing algorithm for access tokens"
    )
    clock_skew: int = Field(default=60, description="Clock skew tolerance in seconds")

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.refresh_token_expiry_days * 24 * 3600


class GoogleConfig(BaseModel):
    """Google OAuth 2.0 / OpenID Connect configuration."""

    client_id: str | None = Field(default=None, description="Google OAuth client ID")
    client_secret: str | None = Field(
        default=None, description="Google OAuth client secret"
    )
    token_endpoint: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="Authorization code exchange endpoint",
    )
    discovery_url: str = Field(
        default="https://accounts.google.com/.well-known/openid-configuration",
        description="OpenID discovery document URL",
    )
    issuers: list[str] = Field(
        default_factory=lambda: list(GOOGLE_ISSUERS),
        description="Accepted ID token issuers",
    )
    redirect_uri: str = Field(
        default="postmessage",
        description="Redirect URI sentinel used by browser popup code flows",
    )
    key_refresh_interval_hours: float = Field(
        default=12, description="Background refresh period for signing keys"
    )
    key_retry_interval_minutes: float = Field(
        default=30, description="Retry period after a failed signing key refresh"
    )
    clock_skew: int = Field(
        default=300, description="Clock skew tolerance for ID tokens in seconds"
    )
    http_timeout: float = Field(default=10.0, description="HTTP timeout in seconds")


class PasswordPolicyConfig(BaseModel):
    """Password rules enforced on local registration."""

    min_length: int = Field(default=6)
    require_digit: bool = Field(default=True)
    require_lowercase: bool = Field(default=True)
    require_uppercase: bool = Field(default=True)
    require_non_alphanumeric: bool = Field(default=True)


class SecurityConfig(BaseModel):
    """Security configuration for authentication flows."""

    default_role: str = Field(
        default="Customer", description="Role assigned to newly created users"
    )
    roles: list[str] = Field(
        default_factory=lambda: ["Admin", "Customer"],
        description="Roles seeded at startup",
    )
    failure_delay_min_ms: int = Field(
        default=100, description="Lower bound of the randomized failure delay"
    )
    failure_delay_max_ms: int = Field(
        default=300, description="Upper bound (exclusive) of the failure delay"
    )
    require_confirmed_email: bool = Field(
        default=False, description="Refuse password sign-in for unconfirmed emails"
    )
    password: PasswordPolicyConfig = Field(default_factory=PasswordPolicyConfig)


class SeedConfig(BaseModel):
    """Default administrator created on first start."""

    enabled: bool = Field(default=True)
    admin_username: str = Field(default="admin")
    admin_email: str = Field(default="admin@example.com")
    admin_password: str | None = Field(
        default=None, description="Admin password; seeding is skipped when unset"
    )


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="json", description="Log format")
    file: str | None = Field(default="logs/app.log", description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(BaseModel):
    """Database configuration model."""

    url: str = Field(
        default="sqlite:///./servicehub.db", description="Database connection URL"
    )
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=8000, description="Application port")
    cors: CORSConfig = Field(
        default_factory=CORSConfig, description="CORS configuration"
    )


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    jwt: JWTConfig = Field(
        default_factory=JWTConfig, description="Access token configuration"
    )
    google: GoogleConfig = Field(
        default_factory=GoogleConfig, description="Google OAuth configuration"
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    seed: SeedConfig = Field(
        default_factory=SeedConfig, description="Database seeding configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )


def missing_required_settings(config: ConfigData) -> list[str]:
    """Return the dotted names of required settings that are empty."""
    required = {
        "jwt.secret_key": config.jwt.secret_key,
        "jwt.issuer": config.jwt.issuer,
        "jwt.audience": config.jwt.audience,
        "google.client_id": config.google.client_id,
        "google.client_secret": config.google.client_secret,
    }
    return [name for name, value in required.items() if not value]


def validate_startup_config(config: ConfigData) -> ConfigData:
    """Fail fast when configuration required by the auth flows is absent.

    Raises:
        ConfigurationError: If any required setting is missing or inconsistent.
    """
    from servicehub.core.errors import ConfigurationError

    missing = missing_required_settings(config)
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}"
        )

    sec = config.security
    if not 0 <= sec.failure_delay_min_ms < sec.failure_delay_max_ms:
        raise ConfigurationError(
            "security.failure_delay_min_ms must be >= 0 and below failure_delay_max_ms"
        )
    if sec.default_role not in sec.roles:
        raise ConfigurationError(
            f"Default role '{sec.default_role}' is not in security.roles"
        )

    if config.app.environment == "production" and len(config.jwt.secret_key or "") < 32:
        logger.warning("JWT signing secret is shorter than 32 characters")

    return config
