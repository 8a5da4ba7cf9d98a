"""
Suggestion job results.

A TTL'd handoff between request admission, the worker and polling clients.
Not history: results expire after 24 hours and the store does not enforce
status ordering (callers never regress a job).
"""

import logging
from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from constants.limits import JOB_RESULT_TTL_SECONDS
from core.exceptions import StoreError
from models.suggestion import SuggestionJobResult

logger = logging.getLogger(__name__)


def suggestion_result_key(account_id: str, job_id: str) -> str:
    return f"suggestion:{account_id}:{job_id}"


class JobStore:
    """Redis-backed job result cache keyed by (account_id, job_id)."""

    def __init__(self, redis: Redis, ttl_seconds: int = JOB_RESULT_TTL_SECONDS):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def set_result(self, account_id: str, job_id: str, result: SuggestionJobResult) -> None:
        """
        Store (or overwrite) a job result.

        Raises:
            StoreError: If Redis is unreachable
        """
        try:
            await self.redis.set(
                suggestion_result_key(account_id, job_id),
                result.model_dump_json(by_alias=True),
                ex=self.ttl_seconds,
            )
        except RedisError as e:
            raise StoreError(
                message="Failed to store suggestion result",
                details={"job_id": job_id, "error": str(e)},
            ) from e

    async def get_result(self, account_id: str, job_id: str) -> Optional[SuggestionJobResult]:
        """
        Fetch a job result.

        Returns:
            The stored result, or None if unknown, expired or unreadable

        Raises:
            StoreError: If Redis is unreachable
        """
        try:
            raw = await self.redis.get(suggestion_result_key(account_id, job_id))
        except RedisError as e:
            raise StoreError(
                message="Failed to read suggestion result",
                details={"job_id": job_id, "error": str(e)},
            ) from e

        if not raw:
            return None

        try:
            return SuggestionJobResult.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Discarding unreadable result for job {job_id}")
            return None
