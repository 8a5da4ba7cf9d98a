"""
User-facing messages and error strings.

Centralized location for all client-visible messages to keep the
error envelope consistent across routes, the worker and the poller.
"""


class ErrorMessages:
    """Error messages returned to clients."""

    # Authentication
    AUTHENTICATION_REQUIRED = "Missing or invalid authorization header"
    MISSING_ACCOUNT_CONTEXT = "Missing account context"
    COULD_NOT_VALIDATE_CREDENTIALS = "Token verification failed"

    # Admission
    RATE_LIMIT_EXCEEDED = "Daily limit of {limit} requests exceeded. Please try again tomorrow or upgrade your plan."
    PLAN_UPGRADE_REQUIRED = "Upgrade your plan to use custom instructions and saved presets."
    SETTINGS_UPGRADE_REQUIRED = "Upgrade your plan to use settings."

    # Upstream
    CIRCUIT_OPEN = "Suggestion service temporarily unavailable. Please retry shortly."
    SUGGESTION_FAILED = "Suggestion generation failed"

    # Admin
    ADMIN_NOT_CONFIGURED = "Admin access is not configured."
    ADMIN_UNAUTHORIZED = "Admin access denied."

    # Validation
    INVALID_REQUEST = "Invalid request format"

    # Internal
    INTERNAL_ERROR = "An unexpected error occurred"


class SuccessMessages:
    """Success messages returned to clients."""

    SETTINGS_SAVED = "Settings saved"
    PLAN_UPDATED = "Account plan updated"
