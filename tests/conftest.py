"""Shared test fixtures and helpers."""

import os

# Settings are validated at import time of the app
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("MODEL_API_KEY", "test-model-key")

import json
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import pytest

from core.clients.model import ModelResponse, ModelUsage
from models.account import AccountPlan, Identity, PlanTier
from models.suggestion import SuggestionRequest, ThreadMessage


@pytest.fixture
async def redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def identity():
    return Identity(account_id="acct-1", user_id="user-1")


def make_plan(tier: PlanTier = PlanTier.FREE) -> AccountPlan:
    return AccountPlan(plan=tier, is_active=tier != PlanTier.FREE)


def make_request(**overrides) -> SuggestionRequest:
    """Helper to create a canonical SuggestionRequest."""
    data = {
        "thread_id": "thread-1",
        "fb_thread_id": "fb-thread-1",
        "listing_title": "Oak dining table",
        "listing_price": "$120",
        "conversation_goal": "sell_item",
        "messages": [
            ThreadMessage(sender_id="buyer", text="Is this still available?", timestamp=1_700_000_000_000, is_user=False),
            ThreadMessage(sender_id="me", text="Yes it is!", timestamp=1_700_000_060_000, is_user=True),
        ],
    }
    data.update(overrides)
    return SuggestionRequest(**data)


def model_output(
    message: str = "Yes, it's available! When would you like to pick it up?",
    intent_score: float = 0.8,
    next_action: str = "ask_availability",
    reasoning: str = "Buyer asked about availability.",
) -> str:
    return json.dumps(
        {
            "suggestedMessage": message,
            "intentScore": intent_score,
            "reasoning": reasoning,
            "nextAction": next_action,
        }
    )


def make_model_client(content: Optional[str] = None, side_effect=None) -> MagicMock:
    """Model client stub whose ``call`` returns ``content``."""
    client = MagicMock()
    client.call = AsyncMock(
        return_value=ModelResponse(
            content=content if content is not None else model_output(),
            usage=ModelUsage(input_tokens=120, output_tokens=40, total_tokens=160),
        ),
        side_effect=side_effect,
    )
    return client


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms
