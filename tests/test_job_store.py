"""Tests for the job result store and the suggestion queue."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from core.exceptions import StoreError
from models.suggestion import Suggestion, SuggestionJobPayload, SuggestionJobResult
from services.job_store import JobStore, suggestion_result_key
from services.suggestion_queue import SuggestionQueue
from tests.conftest import make_request


def _completed(job_id: str = "job-1") -> SuggestionJobResult:
    return SuggestionJobResult(
        job_id=job_id,
        status="completed",
        suggestion=Suggestion(
            suggested_message="Yes! Saturday works.",
            intent_score=0.7,
            reasoning="Buyer proposed a day.",
            next_action="close",
        ),
    )


def _payload(job_id: str) -> SuggestionJobPayload:
    return SuggestionJobPayload(
        job_id=job_id,
        request_id=f"req-{job_id}",
        account_id="acct-1",
        user_id="user-1",
        plan="pro",
        request=make_request(),
    )


class TestJobStore:
    async def test_stored_result_is_read_back(self, redis):
        store = JobStore(redis)
        await store.set_result("acct-1", "job-1", _completed())

        result = await store.get_result("acct-1", "job-1")

        assert result.status == "completed"
        assert result.suggestion.next_action == "close"

    async def test_results_expire_after_a_day(self, redis):
        store = JobStore(redis)
        await store.set_result("acct-1", "job-1", _completed())

        ttl = await redis.ttl(suggestion_result_key("acct-1", "job-1"))
        assert 86_000 < ttl <= 86_400

    async def test_value_uses_wire_field_names(self, redis):
        await JobStore(redis).set_result("acct-1", "job-1", _completed())
        raw = await redis.get("suggestion:acct-1:job-1")
        assert '"jobId":"job-1"' in raw
        assert '"suggestedMessage"' in raw

    async def test_results_scoped_to_account(self, redis):
        store = JobStore(redis)
        await store.set_result("acct-1", "job-1", _completed())
        assert await store.get_result("acct-2", "job-1") is None

    async def test_missing_result(self, redis):
        assert await JobStore(redis).get_result("acct-1", "nope") is None

    async def test_corrupt_result_reads_as_missing(self, redis):
        await redis.set("suggestion:acct-1:job-1", '{"jobId": "job-1", "status": "exploded"}')
        assert await JobStore(redis).get_result("acct-1", "job-1") is None

    async def test_overwrite(self, redis):
        store = JobStore(redis)
        await store.set_result("acct-1", "job-1", SuggestionJobResult(job_id="job-1", status="processing"))
        await store.set_result("acct-1", "job-1", _completed())
        assert (await store.get_result("acct-1", "job-1")).status == "completed"

    async def test_write_failure_raises_store_error(self):
        broken = MagicMock()
        broken.set = AsyncMock(side_effect=RedisConnectionError("down"))

        with pytest.raises(StoreError):
            await JobStore(broken).set_result("acct-1", "job-1", _completed())


class TestSuggestionQueue:
    async def test_fifo(self, redis):
        queue = SuggestionQueue(redis)
        await queue.enqueue(_payload("job-1"))
        await queue.enqueue(_payload("job-2"))

        assert await queue.depth() == 2
        assert (await queue.dequeue(timeout=1)).job_id == "job-1"
        assert (await queue.dequeue(timeout=1)).job_id == "job-2"

    async def test_payload_survives_queue(self, redis):
        queue = SuggestionQueue(redis)
        await queue.enqueue(_payload("job-1"))

        payload = await queue.dequeue(timeout=1)

        assert payload.plan == "pro"
        assert payload.request.to_wire() == make_request().to_wire()

    async def test_malformed_entry_is_dropped(self, redis):
        queue = SuggestionQueue(redis)
        await redis.lpush(queue.key, '{"jobId": 42}')

        assert await queue.dequeue(timeout=1) is None
        assert await queue.depth() == 0
