"""
Circuit breaker around the upstream model.

State lives in Redis so every request handler and the queue worker see the
same breaker. Callers must pair ``assert_closed()`` with exactly one of
``record_success()`` / ``record_failure()``.

    closed    --3 failures-->            open
    open      --cooldown elapsed, next check-->  half_open (one trial)
    half_open --failure-->               open (fresh cooldown)
    half_open --success-->               closed

Redis failures surface as ``StoreError``; the caller decides the policy.
"""

import logging
import time
from typing import Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from constants.limits import (
    CIRCUIT_FAILURE_THRESHOLD,
    CIRCUIT_HALF_OPEN_MAX_FAILURES,
    CIRCUIT_OPEN_DURATION_MS,
    CIRCUIT_STATE_TTL_SECONDS,
)
from core.exceptions import CircuitOpenError, StoreError

logger = logging.getLogger(__name__)

CircuitState = Literal["closed", "open", "half_open"]


class CircuitSnapshot(BaseModel):
    """Persisted breaker state (camelCase on the wire)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    state: CircuitState = "closed"
    failure_count: int = Field(0, alias="failureCount", ge=0)
    last_failure_at: Optional[int] = Field(None, alias="lastFailureAt")
    next_attempt_at: Optional[int] = Field(None, alias="nextAttemptAt")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "CircuitSnapshot":
        if not raw:
            return cls()
        try:
            return cls.model_validate_json(raw)
        except ValidationError:
            return cls()


def _now_ms() -> int:
    return int(time.time() * 1000)


class CircuitBreaker:
    """
    Shared breaker keyed by upstream service name.

    Args:
        redis: Shared async Redis client
        service_name: Upstream service the breaker guards
        failure_threshold: Failures in closed state before opening
        open_duration_ms: Cooldown before a half-open trial
        clock: Millisecond clock, injectable for tests
    """

    def __init__(
        self,
        redis: Redis,
        service_name: str,
        failure_threshold: int = CIRCUIT_FAILURE_THRESHOLD,
        open_duration_ms: int = CIRCUIT_OPEN_DURATION_MS,
        clock: Callable[[], int] = _now_ms,
    ):
        self.redis = redis
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.open_duration_ms = open_duration_ms
        self.clock = clock

    @property
    def key(self) -> str:
        return f"circuit:{self.service_name}"

    def _store_error(self, e: RedisError) -> StoreError:
        logger.error(f"Circuit {self.service_name} state unavailable: {e}")
        return StoreError(
            message="Circuit breaker state unavailable",
            details={"service": self.service_name, "error": str(e)},
        )

    async def snapshot(self) -> CircuitSnapshot:
        """
        Raises:
            StoreError: If Redis is unreachable
        """
        try:
            return CircuitSnapshot.from_json(await self.redis.get(self.key))
        except RedisError as e:
            raise self._store_error(e) from e

    async def _save(self, snapshot: CircuitSnapshot) -> None:
        try:
            await self.redis.set(self.key, snapshot.to_json(), ex=CIRCUIT_STATE_TTL_SECONDS)
        except RedisError as e:
            raise self._store_error(e) from e

    async def assert_closed(self) -> None:
        """
        Admission check before an upstream call.

        Raises:
            CircuitOpenError: While open and cooling down, or while a
                half-open trial is already in flight
            StoreError: If Redis is unreachable
        """
        try:
            claimed_trial = await self._admit()
        except WatchError:
            # another handler claimed the trial call
            raise CircuitOpenError(
                details={"service": self.service_name, "state": "half_open"}
            ) from None
        except RedisError as e:
            raise self._store_error(e) from e

        if claimed_trial:
            logger.info(f"Circuit {self.service_name} half-open, allowing trial call")

    async def _admit(self) -> bool:
        async with self.redis.pipeline(transaction=True) as pipe:
            await pipe.watch(self.key)
            snapshot = CircuitSnapshot.from_json(await pipe.get(self.key))

            if snapshot.state == "closed":
                return False

            if snapshot.state == "half_open":
                raise CircuitOpenError(details={"service": self.service_name, "state": "half_open"})

            now = self.clock()
            if snapshot.next_attempt_at is None or now < snapshot.next_attempt_at:
                raise CircuitOpenError(
                    details={"service": self.service_name, "next_attempt_at": snapshot.next_attempt_at}
                )

            trial = snapshot.model_copy(update={"state": "half_open", "next_attempt_at": None})
            pipe.multi()
            pipe.set(self.key, trial.to_json(), ex=CIRCUIT_STATE_TTL_SECONDS)
            await pipe.execute()
            return True

    async def record_success(self) -> None:
        """
        Raises:
            StoreError: If Redis is unreachable
        """
        snapshot = await self.snapshot()
        if snapshot.state != "closed" or snapshot.failure_count != 0:
            await self._save(CircuitSnapshot())
            if snapshot.state != "closed":
                logger.info(f"Circuit {self.service_name} closed after successful call")

    async def record_failure(self) -> None:
        """
        Raises:
            StoreError: If Redis is unreachable
        """
        now = self.clock()
        snapshot = await self.snapshot()
        failure_count = snapshot.failure_count + 1

        reopen = snapshot.state == "half_open" and failure_count >= CIRCUIT_HALF_OPEN_MAX_FAILURES
        if reopen or failure_count >= self.failure_threshold:
            await self._save(
                CircuitSnapshot(
                    state="open",
                    failure_count=failure_count,
                    last_failure_at=now,
                    next_attempt_at=now + self.open_duration_ms,
                )
            )
            logger.warning(
                f"Circuit {self.service_name} opened after {failure_count} failures "
                f"(cooldown {self.open_duration_ms}ms)"
            )
            return

        await self._save(
            CircuitSnapshot(
                state="closed",
                failure_count=failure_count,
                last_failure_at=now,
            )
        )
