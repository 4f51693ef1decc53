"""
Constants and enums for the credential broker.

This module centralizes the magic strings used across the store, the
provisioner and the orchestrating service.
"""

from enum import Enum


class OperationStatus(str, Enum):
    """Status values for operations."""

    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    ENABLE_LOGS_QUEUE = "ENABLE_LOGS_QUEUE"

    # Broker's own credential database
    DB_TYPE = "DB_TYPE"
    DB_HOST = "DB_HOST"
    DB_PORT = "DB_PORT"
    DB_NAME = "DB_NAME"
    DB_USER = "DB_USER"
    DB_PASSWORD = "DB_PASSWORD"
    DB_ECHO = "DB_ECHO"

    # Process-wide key for secrets at rest
    BROKER_SECRET = "BROKER_SECRET"

    # Provisioning defaults
    ACCOUNT_PROFILE = "ACCOUNT_PROFILE"
    ACCOUNT_ROLE = "ACCOUNT_ROLE"


class TargetType(str, Enum):
    """Database engines a credential-set can point at."""

    ORACLE = "oracle"


class FlowState(str, Enum):
    """States of a create/drop request as it moves through the broker."""

    IDLE = "idle"
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    PROVISIONING = "provisioning"
    BOOKMARKING = "bookmarking"
    COMPENSATING = "compensating"
    DONE = "done"


class Intent(str, Enum):
    """Intents a transport layer can hand to the broker."""

    REGISTER = "register"
    UPDATE = "update"
    UNREGISTER = "unregister"
    CREATE_ACCOUNT = "create_account"
    DROP_ACCOUNT = "drop_account"


class TableName(str, Enum):
    """Tables owned by the credential store."""

    TOKENS = "tokens"
    BOOKMARKS = "bookmarks"


class Limits:
    """System limits and thresholds."""

    TOKEN_LENGTH = 64
    RANDOM_BYTES = 32
    MAX_IDENTIFIER_LENGTH = 128
    MAX_ADDRESS_LENGTH = 255
