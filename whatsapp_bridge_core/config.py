"""
Centralized configuration management for the WhatsApp bridge core.

This module provides a unified configuration system with support for:
- Environment variables
- Feature flags
- Runtime configuration
- Validation using Pydantic

Components receive an AppConfig explicitly in their constructors; the global
accessors below exist for application wiring only.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_ALLOWED_ROLES, EnvironmentVariable, Limits, LogLevel, QueueName


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.DATABASE_URL.value, "sqlite:///./whatsapp_bridge.db"
        ),
        description="Database connection string",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_size: int = Field(default=5, description="Connection pool size (server databases)")
    max_overflow: int = Field(default=10, description="Connections allowed beyond pool_size")
    pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    development_mode: bool = Field(default=False, description="Allow destructive table drops")

    @property
    def is_sqlite(self) -> bool:
        return self.connection_string.startswith("sqlite")

    def __repr__(self) -> str:
        """String representation with the password masked."""
        masked = self.connection_string
        if "@" in masked and "://" in masked:
            scheme, rest = masked.split("://", 1)
            credentials, host = rest.rsplit("@", 1)
            user = credentials.split(":", 1)[0]
            masked = f"{scheme}://{user}:***@{host}"
        return f"DatabaseConfig(connection_string='{masked}', echo={self.echo})"


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    usage_queue_name: str = Field(default=QueueName.USAGE.value, description="Usage events queue")
    logs_queue_name: str = Field(default=QueueName.LOGS.value, description="Log shipping queue")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class ApiConfig(BaseModel):
    """Outbound WhatsApp API settings."""

    base_url: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.API_URL.value, ""),
        description="Base URL of the WhatsApp API server",
    )
    connection_timeout: int = Field(
        default_factory=lambda: int(
            os.getenv(
                EnvironmentVariable.CONNECTION_TIMEOUT.value, str(Limits.DEFAULT_TIMEOUT_SECONDS)
            )
        ),
        description="Per-attempt HTTP timeout in seconds",
    )
    max_retries: int = Field(
        default_factory=lambda: int(
            os.getenv(EnvironmentVariable.MAX_RETRIES.value, str(Limits.DEFAULT_MAX_RETRIES))
        ),
        description="Retries after the first attempt for connection-level failures",
    )
    retry_delay_seconds: float = Field(
        default=Limits.RETRY_DELAY_SECONDS, description="Fixed pause between retries"
    )

    @field_validator("connection_timeout")
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("connection_timeout must be positive")
        return v

    @field_validator("max_retries")
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries cannot be negative")
        return v


class SecurityConfig(BaseModel):
    """Credential signing configuration."""

    signing_secret: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.JWT_SECRET.value) or None,
        description="HS256 signing secret; generated on first use when absent",
    )
    issuer: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.SITE_URL.value, "http://localhost"),
        description="Site identity placed in the iss claim",
    )
    allowed_roles: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ROLES),
        description="Roles permitted to obtain an API credential",
    )


class FeatureFlags(BaseModel):
    """Feature flags for controlling package behavior."""

    debug_mode: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.DEBUG_MODE.value),
        description="Log every request, response and retry",
    )
    enable_usage_tracking: bool = Field(
        default_factory=lambda: _env_flag(EnvironmentVariable.ALLOW_TRACKING.value),
        description="Emit a usage event for each API response",
    )
    enable_logs_queue: bool = Field(default=False, description="Ship logs to an Azure queue")


class AppConfig(BaseModel):
    """Main application configuration."""

    api: ApiConfig = Field(default_factory=ApiConfig, description="API client configuration")
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    features: FeatureFlags = Field(default_factory=FeatureFlags, description="Feature flags")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
