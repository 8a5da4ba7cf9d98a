"""
Redis list queue feeding the suggestion worker.

Producers LPUSH, the worker BRPOPs, so jobs are consumed in FIFO order.
"""

import logging
from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from constants.limits import SUGGESTION_QUEUE_KEY, WORKER_DEQUEUE_TIMEOUT_SECONDS
from core.exceptions import StoreError
from models.suggestion import SuggestionJobPayload

logger = logging.getLogger(__name__)


class SuggestionQueue:
    def __init__(self, redis: Redis, key: str = SUGGESTION_QUEUE_KEY):
        self.redis = redis
        self.key = key

    async def enqueue(self, payload: SuggestionJobPayload) -> None:
        """
        Raises:
            StoreError: If the job cannot be queued
        """
        try:
            await self.redis.lpush(self.key, payload.model_dump_json(by_alias=True))
        except RedisError as e:
            raise StoreError(
                message="Failed to enqueue suggestion job",
                details={"job_id": payload.job_id, "error": str(e)},
            ) from e
        logger.info(f"Queued suggestion job {payload.job_id} for account {payload.account_id}")

    async def dequeue(
        self, timeout: int = WORKER_DEQUEUE_TIMEOUT_SECONDS
    ) -> Optional[SuggestionJobPayload]:
        """
        Block up to ``timeout`` seconds for the next job.

        Returns:
            The next payload, or None on timeout or an unreadable entry
        """
        item = await self.redis.brpop([self.key], timeout=timeout)
        if item is None:
            return None

        _, raw = item
        try:
            return SuggestionJobPayload.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Dropping malformed suggestion job: {e}")
            return None

    async def depth(self) -> int:
        return await self.redis.llen(self.key)
