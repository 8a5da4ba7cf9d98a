"""
Per-account daily request quota.

One Redis counter per account per UTC day. INCR is atomic, so concurrent
requests at the boundary can never both observe the same count: exactly one
of them gets ``limit`` and the other ``limit + 1``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from redis.asyncio import Redis
from redis.exceptions import RedisError

from models.account import PlanTier

logger = logging.getLogger(__name__)


class RateLimitDecision(BaseModel):
    """Outcome of one admission check."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    limit: int
    remaining: int
    reset_at: int = Field(..., description="Epoch milliseconds")
    count: Optional[int] = None


def rate_limit_key(account_id: str, now: datetime) -> str:
    return f"rate_limit:{account_id}:{now.strftime('%Y-%m-%d')}"


def end_of_utc_day(now: datetime) -> datetime:
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)


def rate_limit_headers(decision: RateLimitDecision) -> Dict[str, str]:
    """Headers reported on every admitted or denied request."""
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }


class RateLimiter:
    """
    Daily sliding counter gating admission by plan tier.

    Usage:
        limiter = RateLimiter(get_redis(), settings.daily_limits)
        decision = await limiter.admit(account_id, PlanTier.FREE)
    """

    def __init__(self, redis: Redis, limits: Mapping[str, int]):
        self.redis = redis
        self.limits = dict(limits)

    def limit_for(self, plan: PlanTier) -> int:
        return self.limits[plan.value]

    async def admit(
        self,
        account_id: str,
        plan: PlanTier,
        now: Optional[datetime] = None,
    ) -> RateLimitDecision:
        """
        Count one request attempt and decide admission.

        ``count == limit`` is still allowed; ``limit + 1`` is the first denial.
        If Redis is unreachable the request is allowed (fail open).

        Args:
            account_id: Account ID
            plan: Resolved plan tier
            now: Override for the current time (UTC)

        Returns:
            RateLimitDecision with the values for the rate-limit headers
        """
        now = now or datetime.now(timezone.utc)
        limit = self.limit_for(plan)
        reset = end_of_utc_day(now)
        reset_at = int(reset.timestamp() * 1000)
        key = rate_limit_key(account_id, now)

        try:
            count = await self.redis.incr(key)
            if count == 1:
                ttl_seconds = max(1, int((reset - now).total_seconds()))
                await self.redis.expire(key, ttl_seconds)
            else:
                ttl_seconds = await self.redis.ttl(key)
                if ttl_seconds > 0:
                    reset_at = int(now.timestamp() * 1000) + ttl_seconds * 1000
        except RedisError as e:
            logger.warning(f"Rate limit store unavailable, failing open for account {account_id}: {e}")
            return RateLimitDecision(
                allowed=True,
                limit=limit,
                remaining=limit,
                reset_at=reset_at,
            )

        allowed = count <= limit
        if not allowed:
            logger.warning(
                f"Rate limit exceeded: account={account_id} plan={plan.value} count={count} limit={limit}"
            )

        return RateLimitDecision(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
            count=count,
        )
