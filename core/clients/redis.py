"""
Redis client singleton.

Rate counters, circuit breaker state, job results and the suggestion queue
share one ``redis.asyncio`` connection pool so every request handler and the
worker observe the same state.
"""

import logging
from typing import Optional

from redis.asyncio import Redis

from config.settings import get_settings

logger = logging.getLogger(__name__)

_redis: Optional[Redis] = None


def get_redis() -> Redis:
    """
    Get or create the shared async Redis client.

    Returns:
        Redis: Client decoding responses to ``str``
    """
    global _redis

    if _redis is None:
        settings = get_settings()
        _redis = Redis.from_url(settings.redis_url, decode_responses=True)
        logger.info("Redis client initialized")

    return _redis


async def check_redis_connection() -> bool:
    """Ping Redis for the health check."""
    try:
        return bool(await get_redis().ping())
    except Exception as e:
        logger.error(f"Redis connection check failed: {e}")
        return False


async def close_redis() -> None:
    """Close the shared client on shutdown."""
    global _redis

    if _redis is None:
        return
    try:
        await _redis.aclose()
    except Exception as e:
        logger.error(f"Redis close failed: {e}")
    _redis = None
