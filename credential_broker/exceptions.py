"""
Exception system with error codes, context, and correlation support.

Every failure the broker can report is a BaseError subclass carrying an
ErrorCode, an HTTP-style status code for the transport layer and free-form
context. Errors log themselves on construction: 5xx at ERROR, 4xx at WARNING.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for broker responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    DECRYPTION_ERROR = "1005"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"

    # Provisioning errors (6xxx)
    PROVISIONING_FAILED = "6000"
    GRANT_FAILED = "6001"
    DROP_FAILED = "6002"
    BOOKMARK_FAILED = "6003"
    COMPENSATION_FAILED = "6004"
    CANCELLED = "6005"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for transport responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        """True for 4xx errors the caller can act on."""
        return 400 <= self.status_code < 500

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Lazy import, the logger pulls in config which may raise BaseErrors itself
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "timestamp": self.timestamp,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(
                f"Error {self.error_code.value}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(
        self, include_cause: bool = False, include_traceback: bool = False
    ) -> Dict[str, Any]:
        """
        Convert to dict for transport responses.

        Args:
            include_cause: Include cause information (useful for debugging)
            include_traceback: Include full traceback (only in debug mode)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
            if include_traceback:
                result["error"]["cause"]["traceback"] = self.context["cause"]["traceback"]

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """
        Add additional context to the error (fluent interface).

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# ==================== LAYER ERRORS ====================


class RepositoryError(BaseError):
    """Credential store persistence errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ConfigurationError(BaseError):
    """Raised when required configuration (store DSN, secret key) is missing or invalid."""

    def __init__(self, message: str = "Invalid configuration", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.CONFIGURATION_ERROR, status_code=500, **kwargs
        )


# ==================== CLIENT ERRORS ====================


class ValidationError(BaseError):
    """A required field is missing or malformed."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize validation error with field context."""
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class NotFoundError(BaseError):
    """A token does not resolve to a registered credential-set."""

    def __init__(self, message: str = "Token not found", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.NOT_FOUND, status_code=404, **kwargs)


class DuplicateError(BaseError):
    """A credential-set is already registered for an address and schema."""

    def __init__(self, message: str = "Already registered", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.DUPLICATE, status_code=409, **kwargs)


class AlreadyExistsError(DuplicateError):
    """The account name is already in use as a storage object in the target database."""

    def __init__(self, message: str = "Account already exists", **kwargs):
        super().__init__(message=message, **kwargs)


class FlowCancelledError(BaseError):
    """The caller cancelled the request before the next step could start."""

    def __init__(self, message: str = "Request cancelled", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.CANCELLED, status_code=499, **kwargs)


# ==================== INTERNAL ERRORS ====================


class ConnectError(BaseError):
    """The target database could not be reached with the resolved credential-set."""

    def __init__(self, message: str = "Could not connect to target database", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.CONNECTION_ERROR, status_code=500, **kwargs
        )


class DecryptError(BaseError):
    """A stored secret could not be decrypted, usually a misconfigured process key."""

    def __init__(
        self, message: str = "Could not decrypt secret, check the broker secret key", **kwargs
    ):
        super().__init__(
            message=message, error_code=ErrorCode.DECRYPTION_ERROR, status_code=500, **kwargs
        )


# ==================== PROVISIONING ERRORS ====================


class ProvisioningError(BaseError):
    """A provisioning step failed inside the target database."""

    def __init__(
        self,
        message: str = "Provisioning failed",
        error_code: ErrorCode = ErrorCode.PROVISIONING_FAILED,
        **kwargs,
    ):
        super().__init__(message=message, error_code=error_code, status_code=500, **kwargs)


class GrantError(ProvisioningError):
    """The account exists but the role grant failed; account and storage object were kept."""

    def __init__(self, message: str = "Could not grant role", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.GRANT_FAILED, **kwargs)


class DropError(ProvisioningError):
    """Dropping an account or its storage object failed."""

    def __init__(self, message: str = "Could not drop account", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.DROP_FAILED, **kwargs)


class BookmarkError(ProvisioningError):
    """The account was created but could not be bookmarked, so it was dropped again."""

    def __init__(self, message: str = "Could not bookmark account", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.BOOKMARK_FAILED, **kwargs)


class CompensationError(ProvisioningError):
    """
    Cleanup after a failed step itself failed.

    The target database may be inconsistent. The failure that triggered the
    cleanup is kept in ``original_error``.
    """

    def __init__(
        self,
        message: str = "Compensation failed",
        original_error: Optional[Exception] = None,
        **kwargs,
    ):
        self.original_error = original_error
        if original_error is not None:
            kwargs.setdefault("original_error", str(original_error))
        super().__init__(message=message, error_code=ErrorCode.COMPENSATION_FAILED, **kwargs)


# ==================== FACTORIES ====================


def not_found(resource_type: str, cause: Optional[Exception] = None, **identifiers) -> NotFoundError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'CredentialSet')
        cause: Original exception if any
        **identifiers: Resource identifiers; values are not echoed into the message

    Returns:
        Configured NotFoundError instance
    """
    return NotFoundError(
        f"{resource_type} not found",
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def duplicate(resource_type: str, cause: Optional[Exception] = None, **identifiers) -> DuplicateError:
    """
    Factory for duplicate resource errors.

    Args:
        resource_type: Type of resource
        cause: Original exception if any
        **identifiers: Resource identifiers

    Returns:
        Configured DuplicateError instance
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"Duplicate {resource_type}"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return DuplicateError(message, cause=cause, resource_type=resource_type, **identifiers)


def validation_failed(
    field: str, value: Any, reason: str, cause: Optional[Exception] = None
) -> ValidationError:
    """
    Factory for validation errors.

    Args:
        field: Field that failed validation
        value: The invalid value
        reason: Why validation failed
        cause: Original exception if any

    Returns:
        Configured ValidationError instance
    """
    return ValidationError(
        f"Validation failed for {field}: {reason}",
        field=field,
        error_code=ErrorCode.INVALID_FORMAT,
        cause=cause,
        value=str(value),
        reason=reason,
    )


def missing_field(field: str) -> ValidationError:
    """Factory for the '<field> is missing' error reported on empty required fields."""
    return ValidationError(f"{field} is missing", field=field, error_code=ErrorCode.MISSING_REQUIRED)


# ==================== CORRELATION ====================


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
