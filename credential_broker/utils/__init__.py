"""Utility modules for the credential broker."""

# Logging utilities
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    CorrelationContextFilter,
    configure_logging,
    get_logger,
)

# Encryption utilities
from .encryption_utils import SecretCipher

# Token utilities
from .token_utils import generate_token

__all__ = [
    "AzureQueueHandler",
    "ContextAwareLogger",
    "CorrelationContextFilter",
    "configure_logging",
    "get_logger",
    "SecretCipher",
    "generate_token",
]
