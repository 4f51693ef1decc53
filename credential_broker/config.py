"""
Centralized configuration management for the credential broker.

This module provides a unified configuration system with support for:
- Environment variables
- Feature flags
- The process-wide secret key used to encrypt stored secrets
- Provisioning defaults for accounts created in target databases

The broker's own database connection lives in db.db_config.
"""

import os
import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, LogLevel

_SIZE_PATTERN = re.compile(r"^[1-9][0-9]*[KMGT]$")
_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_$#]*$")


class QueueConfig(BaseModel):
    """Queue configuration for shipping structured logs to Azure Storage Queues."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default="logs-queue", description="Logs queue name")


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


class FeatureFlags(BaseModel):
    """Feature flags for controlling broker behavior."""

    enable_logs_queue: bool = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ENABLE_LOGS_QUEUE.value, "false").lower()
        == "true",
        description="Ship logs to the Azure Storage logs queue",
    )


class SecurityConfig(BaseModel):
    """Security-related configuration."""

    encryption_key: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.BROKER_SECRET.value),
        description="Process-wide key for secrets at rest. Rotating it invalidates stored secrets.",
    )
    kdf_iterations: int = Field(
        default=100_000, gt=0, description="PBKDF2 iterations used to stretch a passphrase key"
    )


class ProvisioningConfig(BaseModel):
    """Defaults applied to every account created in a target database."""

    profile: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ACCOUNT_PROFILE.value, "APPUSERS"),
        description="Profile assigned to new accounts",
        validate_default=True,
    )
    role: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ACCOUNT_ROLE.value, "GSB"),
        description="Role granted to new accounts",
        validate_default=True,
    )
    initial_size: str = Field(default="100M", description="Initial datafile size of the tablespace")
    autoextend_next: str = Field(default="100M", description="Auto-extend increment")
    driver: str = Field(default="oracle+oracledb", description="SQLAlchemy driver for targets")
    probe_sql: str = Field(default="SELECT 1 FROM DUAL", description="Connectivity probe")

    @field_validator("initial_size", "autoextend_next")
    def validate_size(cls, v: str) -> str:
        """Sizes are interpolated into DDL, so only '<n><K|M|G|T>' is accepted."""
        if not _SIZE_PATTERN.match(v.upper()):
            raise ValueError(f"Invalid size: {v}. Expected e.g. '100M'")
        return v.upper()

    @field_validator("profile", "role")
    def validate_name(cls, v: str) -> str:
        if not _NAME_PATTERN.match(v):
            raise ValueError(f"Invalid identifier: {v}")
        return v.upper()


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true",
        description="Debug mode",
    )

    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    features: FeatureFlags = Field(default_factory=FeatureFlags, description="Feature flags")
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    provisioning: ProvisioningConfig = Field(
        default_factory=ProvisioningConfig, description="Provisioning defaults"
    )

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
