"""
Shared API dependencies for FastAPI routes.

Provides the caller identity and the Redis-backed pipeline components
used across routers.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis

from config.settings import get_settings
from constants.messages import ErrorMessages
from core.clients.redis import get_redis
from core.clients.supabase import get_supabase_client
from core.exceptions import UnauthorizedError
from models.account import Identity
from services.rate_limiter import RateLimiter
from services.suggestion_orchestrator import SuggestionOrchestrator, create_orchestrator

logger = logging.getLogger(__name__)

# Missing headers are reported through the error envelope, not FastAPI's default
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    Dependency to verify the bearer token and resolve the caller's account.

    Validates the token with Supabase auth. The account ID comes from the
    user's ``app_metadata.account_id``.

    Args:
        credentials: HTTP Authorization credentials with Bearer token

    Returns:
        Identity: account_id and user_id of the caller

    Raises:
        UnauthorizedError: If the token is missing, invalid, or carries no account
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(message=ErrorMessages.AUTHENTICATION_REQUIRED)

    client = get_supabase_client()

    try:
        user_response = client.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise UnauthorizedError(message=ErrorMessages.COULD_NOT_VALIDATE_CREDENTIALS) from e

    user = user_response.user if user_response else None
    if user is None:
        raise UnauthorizedError(message=ErrorMessages.COULD_NOT_VALIDATE_CREDENTIALS)

    app_metadata = getattr(user, "app_metadata", None) or {}
    account_id = app_metadata.get("account_id")
    if not account_id:
        raise UnauthorizedError(message=ErrorMessages.MISSING_ACCOUNT_CONTEXT)

    logger.debug(f"User authenticated: {user.id} (account {account_id})")
    return Identity(account_id=str(account_id), user_id=str(user.id))


def redis_dependency() -> Redis:
    return get_redis()


def get_rate_limiter(redis: Redis = Depends(redis_dependency)) -> RateLimiter:
    return RateLimiter(redis, get_settings().daily_limits)


def get_orchestrator(redis: Redis = Depends(redis_dependency)) -> SuggestionOrchestrator:
    return create_orchestrator(redis)
