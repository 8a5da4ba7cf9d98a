"""
Custom exception hierarchy for the application.

All exceptions inherit from AppException, which provides a consistent structure
for error responses. Domain-specific exceptions should inherit from the
appropriate base exception (NotFoundError, ForbiddenError, etc.).

Usage:
    raise JobNotFoundError()
    raise UpstreamError("model overloaded")
    raise RateLimitExceededError(details={"limit": 15}, headers={...})
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base application exception.

    All custom exceptions should inherit from this class.
    The exception handler will convert these to consistent JSON responses.

    Attributes:
        status_code: HTTP status code to return
        error_code: Machine-readable error identifier
        expose_code: Whether the envelope carries a separate ``code`` field
        message: Human-readable error message
        details: Additional error context (optional)
        headers: Extra response headers (optional)
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    expose_code: bool = False
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.__class__.message
        self.details = details
        self.headers = headers
        super().__init__(self.message)


# Base HTTP Exceptions

class UnauthorizedError(AppException):
    """Authentication required or failed (401)."""
    status_code = 401
    error_code = "Unauthorized"
    message = "Authentication required"


class ForbiddenError(AppException):
    """Access denied to resource (403)."""
    status_code = 403
    error_code = "Forbidden"
    message = "Access denied"


class NotFoundError(AppException):
    """Resource not found (404)."""
    status_code = 404
    error_code = "Not Found"
    message = "Resource not found"


class RateLimitError(AppException):
    """Rate limit exceeded (429)."""
    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"
    expose_code = True
    message = "Rate limit exceeded"


class ExternalServiceError(AppException):
    """External service unavailable (502)."""
    status_code = 502
    error_code = "EXTERNAL_SERVICE_ERROR"
    message = "External service unavailable"


class ServiceUnavailableError(AppException):
    """Dependency temporarily unavailable (503)."""
    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"
    message = "Service temporarily unavailable"


class TimeoutError(AppException):
    """Request timed out (504)."""
    status_code = 504
    error_code = "TIMEOUT"
    message = "Request timed out"


# Admission errors

class RateLimitExceededError(RateLimitError):
    """Daily suggestion quota reached."""
    message = "Daily request limit exceeded"


class PlanUpgradeRequiredError(ForbiddenError):
    """Premium-only feature requested by a free-tier account."""
    error_code = "PLAN_UPGRADE_REQUIRED"
    expose_code = True
    message = "Upgrade your plan to use this feature."


class AdminNotConfiguredError(AppException):
    """Admin endpoints called without an admin key configured."""
    error_code = "ADMIN_NOT_CONFIGURED"
    expose_code = True
    message = "Admin access is not configured."


class AdminUnauthorizedError(ForbiddenError):
    """Admin key missing or wrong."""
    error_code = "ADMIN_UNAUTHORIZED"
    expose_code = True
    message = "Admin access denied."


# Lookup errors

class AccountNotFoundError(NotFoundError):
    """Account row does not exist."""
    message = "Account not found"


class JobNotFoundError(NotFoundError):
    """Suggestion job unknown or expired."""
    message = "Suggestion job not found or expired"


# Pipeline errors

class UpstreamError(ExternalServiceError):
    """Language model returned an error or a malformed response."""
    error_code = "UPSTREAM_ERROR"
    message = "Language model request failed"


class InvalidFormatError(ExternalServiceError):
    """Model output failed structural or policy validation."""
    error_code = "INVALID_FORMAT"
    message = "Language model returned an invalid suggestion"


class CircuitOpenError(ServiceUnavailableError):
    """Upstream calls are short-circuited while the breaker is open."""
    error_code = "CIRCUIT_OPEN"
    message = "Suggestion service temporarily unavailable. Please retry shortly."


class StoreError(AppException):
    """Redis or database operation failed."""
    error_code = "STORE_ERROR"
    message = "Key-value store operation failed"


class SuggestionTimeoutError(TimeoutError):
    """Client gave up polling for a job result."""
    error_code = "SUGGESTION_TIMEOUT"
    message = "Timed out waiting for suggestion"
