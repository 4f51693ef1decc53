from .broker_service import BrokerService
from .intent_dispatcher import IntentDispatcher

__all__ = ["BrokerService", "IntentDispatcher"]
