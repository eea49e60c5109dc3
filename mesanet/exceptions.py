"""
Custom exception classes for the Mesa Networks API.

This module defines a hierarchy of custom exceptions that map to HTTP status codes
and provide consistent error responses across the API. Every exception carries a
machine-stable ``error_code`` and a non-empty list of human-readable messages.

Exception hierarchy:
    AppException (base)
    ├── BadRequestError (400)
    ├── UnauthorizedError (401)
    ├── ForbiddenError (403)
    ├── NotFoundError (404)
    ├── ConflictError (409)
    │   └── AlreadyExistsError
    ├── UnprocessableEntityError (422)
    ├── TooManyRequestsError (429)
    ├── InternalServerError (500)
    │   └── EncryptionError
    └── ServiceUnavailableError (503)
"""

from typing import Any


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    All custom exceptions should inherit from this class to ensure
    consistent error handling and response formatting.

    Attributes:
        status_code: HTTP status code for the error
        error_code: Machine-readable error code
        message: Human-readable error message
        messages: Messages returned to the caller (defaults to [message])
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        messages: list[str] | None = None,
    ) -> None:
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            messages: Optional list of messages; defaults to [message]
        """
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.messages = list(messages) if messages else [message]

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to the response envelope.

        Returns:
            Dictionary with success flag, error code and messages
        """
        return {
            "success": False,
            "code": self.error_code,
            "messages": self.messages,
        }


# =============================================================================
# Client Errors (4xx)
# =============================================================================


class BadRequestError(AppException):
    """Raised when the request body is invalid or violates a domain rule."""

    status_code = 400
    error_code = "BAD_REQUEST"
    default_message = "Bad Request"


class UnauthorizedError(AppException):
    """Raised when no valid credential is presented."""

    status_code = 401
    error_code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(AppException):
    """Raised when the caller lacks permission for the operation."""

    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(AppException):
    """
    Raised when a requested resource does not exist.

    Example:
        >>> raise NotFoundError("User")
        # message: "User not found"
    """

    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Not Found"

    def __init__(self, resource: str | None = None, messages: list[str] | None = None) -> None:
        super().__init__(f"{resource} not found" if resource else None, messages)


class ConflictError(AppException):
    """Raised when an operation conflicts with existing state."""

    status_code = 409
    error_code = "CONFLICT"
    default_message = "Conflict"


class AlreadyExistsError(ConflictError):
    """
    Raised when creating a resource that already exists.

    Example:
        >>> raise AlreadyExistsError("Role ADMIN")
        # message: "Role ADMIN already exists"
    """

    def __init__(self, resource: str, messages: list[str] | None = None) -> None:
        super().__init__(f"{resource} already exists", messages)


class UnprocessableEntityError(AppException):
    """Raised when input is well-formed but rejected by policy."""

    status_code = 422
    error_code = "UNPROCESSABLE_ENTITY"
    default_message = "Unprocessable Entity"


class TooManyRequestsError(AppException):
    """Raised when a rate limit is exceeded."""

    status_code = 429
    error_code = "TOO_MANY_REQUESTS"
    default_message = "Too Many Requests"


# =============================================================================
# Server Errors (5xx)
# =============================================================================


class InternalServerError(AppException):
    """Raised for unexpected server-side failures."""


class EncryptionError(InternalServerError):
    """Raised when encryption or decryption of a stored secret fails."""

    default_message = "Encryption operation failed"


class ServiceUnavailableError(AppException):
    """Raised when a required backing service is unavailable."""

    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"
    default_message = "Service Unavailable"
