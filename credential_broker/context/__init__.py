"""Context management for broker operations."""

from .operation_context import OperationContext, OperationHandler, operation

__all__ = [
    "operation",
    "OperationContext",
    "OperationHandler",
]
