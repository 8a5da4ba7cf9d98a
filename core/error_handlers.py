"""
FastAPI exception handlers for consistent error responses.

Every error leaving the service uses the same envelope:
``{error, message, statusCode, timestamp}`` plus ``code`` for the
machine-readable admission errors.
"""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from constants.messages import ErrorMessages
from core.exceptions import AppException

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def error_envelope(
    error: str,
    message: str,
    status_code: int,
    code: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the standard error body."""
    content: Dict[str, Any] = {
        "error": error,
        "message": message,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if code:
        content["code"] = code
    return content


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle AppException and return consistent JSON response.

    Args:
        request: The incoming request
        exc: The exception that was raised

    Returns:
        JSONResponse with error details
    """
    log_message = f"{exc.error_code}: {exc.message}"
    if exc.details:
        log_message += f" | Details: {exc.details}"

    if exc.status_code >= 500:
        logger.error(log_message, exc_info=True)
    else:
        logger.warning(log_message)

    content = error_envelope(
        error=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        code=exc.error_code if exc.expose_code else None,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are rejected with 400 before any job exists."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", ErrorMessages.INVALID_REQUEST)
    if location:
        message = f"{location}: {message}"

    logger.warning(f"Request validation failed on {request.url.path}: {message}")

    return JSONResponse(
        status_code=400,
        content=error_envelope("VALIDATION_ERROR", message, 400),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions to prevent leaking internal details.

    Args:
        request: The incoming request
        exc: The exception that was raised

    Returns:
        JSONResponse with generic error message
    """
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content=error_envelope("INTERNAL_ERROR", ErrorMessages.INTERNAL_ERROR, 500),
    )


def register_exception_handlers(app: "FastAPI") -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
