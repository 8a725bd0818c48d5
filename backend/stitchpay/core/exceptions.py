"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data
4. No secret material in error messages

IMPORTANT: Raise these instead of bare Exception so the handlers in
exception_handlers.py can map them to status codes.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key", "hash", "signature"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when the caller identity is missing or invalid.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(AppException):
    """
    Raised when an authenticated user lacks the role for an action.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "Forbidden - Admin access required"


class TokenExpiredError(AuthenticationError):
    """Raised when a bearer token has expired."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when a bearer token is malformed or has an invalid signature."""

    default_message = "Token is invalid"


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class PayloadParseError(ValidationError):
    """
    Raised when a webhook body cannot be decoded for its content type.

    The webhook receiver never lets this escape as a 400; it is logged and
    acknowledged so the provider stops retrying.
    """

    default_message = "Could not parse notification payload"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class OrderNotFoundError(ResourceNotFoundError):
    """Raised when requested orders are missing or belong to another customer."""

    default_message = "Orders not found or invalid customer"


class InvoiceNotFoundError(ResourceNotFoundError):
    """Raised when an invoice doesn't exist."""

    default_message = "Invoice not found"


class ConflictError(AppException):
    """
    Raised when the request conflicts with current resource state.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Request conflicts with current state"


class InvoiceConflictError(ConflictError):
    """
    Raised when orders are already covered by an open or paid invoice,
    or when an invoice cannot move to the requested status.
    """

    default_message = "Orders are already attached to an invoice"


# ============================================================================
# Configuration & Infrastructure Exceptions
# ============================================================================


class ConfigurationError(AppException):
    """
    Raised when required payment provider configuration is missing.

    WHY: Signing and verification fail closed instead of running with empty
    secrets. The message never includes the secret values.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Payment provider credentials not configured"


class StorageError(AppException):
    """
    Raised when an object storage operation fails.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Storage operation failed"
