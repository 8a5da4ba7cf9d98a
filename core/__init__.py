"""Core module containing shared exceptions, error handlers, and clients."""

from core.exceptions import (
    AppException,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ExternalServiceError,
    RateLimitError,
    RateLimitExceededError,
    PlanUpgradeRequiredError,
    AdminNotConfiguredError,
    AdminUnauthorizedError,
    AccountNotFoundError,
    JobNotFoundError,
    UpstreamError,
    InvalidFormatError,
    CircuitOpenError,
    StoreError,
    SuggestionTimeoutError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ExternalServiceError",
    "RateLimitError",
    "RateLimitExceededError",
    "PlanUpgradeRequiredError",
    "AdminNotConfiguredError",
    "AdminUnauthorizedError",
    "AccountNotFoundError",
    "JobNotFoundError",
    "UpstreamError",
    "InvalidFormatError",
    "CircuitOpenError",
    "StoreError",
    "SuggestionTimeoutError",
]
