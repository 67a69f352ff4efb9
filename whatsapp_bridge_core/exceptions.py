"""
Consolidated exception system with error codes, context, and correlation support.

This module provides a unified exception hierarchy for the whole package,
with automatic logging and correlation ID tracking. Callers of the API
client see one of:

- AuthenticationError: no credential could be minted before the call
- TransientNetworkError: connection-level failures outlasted every retry
- ApiError: the service answered with HTTP status >= 400
- ResponseParseError: the service answered < 400 with a body that is not JSON
- UploadFileNotFoundError: the file handed to an upload does not exist
"""

import threading
import traceback
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    EXPIRED = "3004"

    # Business logic errors (4xxx)
    INVALID_STATE_TRANSITION = "4001"
    PERMISSION_DENIED = "4003"
    AUTHENTICATION_FAILED = "4005"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    INTEGRATION_ERROR = "5003"
    RESPONSE_PARSE_ERROR = "5005"
    SIGNING_ERROR = "5006"


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
            status_code: HTTP status code for API responses
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

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Lazy import: the logger module imports config, which must not import us back
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
            logger.error(f"Error {self.error_code.value}: {self.message}", extra=log_data)
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(
        self, include_cause: bool = False, include_traceback: bool = False
    ) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

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


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Repository layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize repository error with database context."""
        super().__init__(message, error_code, status_code, cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize validation error with field context."""
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class ExternalServiceError(BaseError):
    """External service integration errors."""

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        status_code: int = 502,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize external service error with service context."""
        context["service_name"] = service_name
        super().__init__(message, error_code, status_code, cause, **context)


# ==================== TOKEN ISSUER EXCEPTIONS ====================


class UnauthorizedError(BaseError):
    """Raised when the caller's roles do not intersect the allow-list."""

    def __init__(self, message: str = "User is not allowed to access the WhatsApp API", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.PERMISSION_DENIED, status_code=403, **kwargs
        )


class SigningFailedError(BaseError):
    """Raised when no signing secret is available or signing itself fails."""

    def __init__(self, message: str = "Failed to sign credential", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.SIGNING_ERROR, status_code=500, **kwargs
        )


# ==================== API CLIENT EXCEPTIONS ====================


class AuthenticationError(BaseError):
    """Raised when a credential could not be obtained before an outbound call."""

    def __init__(self, message: str = "Failed to generate authentication token", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.AUTHENTICATION_FAILED, status_code=401, **kwargs
        )


class TransientNetworkError(ExternalServiceError):
    """Raised when connection-level failures persist after every retry."""

    def __init__(self, message: str, attempts: int, **kwargs):
        self.attempts = attempts
        super().__init__(
            message,
            service_name="whatsapp_api",
            error_code=ErrorCode.CONNECTION_ERROR,
            status_code=503,
            attempts=attempts,
            **kwargs,
        )


class ApiError(ExternalServiceError):
    """Raised when the service responds with HTTP status >= 400."""

    def __init__(self, message: str, status_code: int, **kwargs):
        self.api_status = status_code
        super().__init__(
            message,
            service_name="whatsapp_api",
            error_code=ErrorCode.EXTERNAL_API_ERROR,
            status_code=status_code,
            **kwargs,
        )


class ResponseParseError(ExternalServiceError):
    """Raised when a successful response carries a body that is not JSON."""

    def __init__(self, message: str = "Error parsing API response", **kwargs):
        super().__init__(
            message,
            service_name="whatsapp_api",
            error_code=ErrorCode.RESPONSE_PARSE_ERROR,
            status_code=502,
            **kwargs,
        )


class UploadFileNotFoundError(BaseError):
    """Raised when a multipart upload names a file that does not exist."""

    def __init__(self, message: str = "File not found", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.NOT_FOUND, status_code=404, **kwargs)


# ==================== SESSION EXCEPTIONS ====================


class InvalidSessionTransitionError(BaseError):
    """Raised when a session status change is not allowed by the state machine."""

    def __init__(self, from_status: str, to_status: str, **kwargs):
        super().__init__(
            message=f"Invalid session transition: {from_status} -> {to_status}",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            status_code=409,
            from_status=from_status,
            to_status=to_status,
            **kwargs,
        )


class InvalidSessionResponseError(ExternalServiceError):
    """Raised when a session endpoint answers without the fields we need."""

    def __init__(self, message: str = "Invalid API response", **kwargs):
        super().__init__(
            message,
            service_name="whatsapp_api",
            error_code=ErrorCode.INVALID_FORMAT,
            status_code=502,
            **kwargs,
        )


class SessionAlreadyExistsError(BaseError):
    """Raised when a vendor already has a session record."""

    def __init__(self, message: str = "Vendor already has an active session", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.DUPLICATE, status_code=409, **kwargs)


class SessionNotFoundError(BaseError):
    """Raised when an operation needs a session record and the vendor has none."""

    def __init__(self, message: str = "No active session found", **kwargs):
        super().__init__(message=message, error_code=ErrorCode.NOT_FOUND, status_code=404, **kwargs)


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
        error_code=ErrorCode.VALIDATION_FAILED,
        cause=cause,
        value=str(value),
        reason=reason,
    )


# Correlation ID management
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


@contextmanager
def correlation_scope() -> Iterator[str]:
    """
    Share one correlation ID across every error raised in the block.

    An ID already set by an outer scope is reused and left in place;
    otherwise a new one is generated and cleared on exit.
    """
    existing = get_correlation_id()
    if existing:
        yield existing
        return

    correlation_id = str(uuid.uuid4())
    set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        clear_correlation_id()
