"""
Credential broker.

Registers target-database credentials under opaque tokens and provisions or
removes login accounts in those targets, keeping a bookmark per account.
"""

from .services import BrokerService, IntentDispatcher

__version__ = "0.1.0"

__all__ = ["BrokerService", "IntentDispatcher", "__version__"]
