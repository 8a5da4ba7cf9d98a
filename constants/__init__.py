"""Constants module for the application."""

from constants.messages import ErrorMessages, SuccessMessages
from constants.limits import (
    JOB_RESULT_TTL_SECONDS,
    MAX_SUGGESTION_LENGTH,
    MODEL_SERVICE_NAME,
)

__all__ = [
    "ErrorMessages",
    "SuccessMessages",
    "JOB_RESULT_TTL_SECONDS",
    "MAX_SUGGESTION_LENGTH",
    "MODEL_SERVICE_NAME",
]
