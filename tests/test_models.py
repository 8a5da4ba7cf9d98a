"""Tests for request normalisation and result models."""

import pytest
from pydantic import ValidationError

from models.suggestion import (
    Suggestion,
    SuggestionJobResult,
    SuggestionRequest,
    normalize_payload,
)

CANONICAL = {
    "threadId": "thread-1",
    "fbThreadId": "fb-1",
    "messages": [{"senderId": "b", "text": "Hi", "timestamp": 1, "isUser": False}],
}


class TestNormalizePayload:
    def test_canonical_request(self):
        request = normalize_payload(CANONICAL)
        assert isinstance(request, SuggestionRequest)
        assert request.conversation_goal == "general"
        assert request.uses_premium_features is False

    def test_thread_context_payload(self):
        request = normalize_payload(
            {
                "threadId": "555",
                "listingData": {"id": "not-numeric", "title": "Bike", "price": "$80"},
                "conversationGoal": "buy_item",
                "quickQuestion": "Ask about the tyres",
                "messages": [
                    {"senderType": "other", "text": "Yes", "timestamp": 2},
                ],
            }
        )
        assert request.fb_thread_id == "555"
        assert request.thread_id == "555"
        assert request.listing_url is None
        assert request.listing_price == "$80"
        assert request.conversation_goal == "buy_item"
        assert request.quick_question == "Ask about the tyres"
        assert request.messages[0].is_user is False

    def test_thread_context_without_listing(self):
        request = normalize_payload({"threadId": "1", "messages": []})
        assert request.listing_title is None
        assert request.messages == []

    def test_premium_fields(self):
        request = normalize_payload({**CANONICAL, "savedPresetId": "p1"})
        assert request.uses_premium_features is True

    def test_empty_custom_instructions_rejected(self):
        with pytest.raises(ValidationError):
            normalize_payload({**CANONICAL, "customInstructions": ""})

    def test_missing_messages_rejected(self):
        with pytest.raises(ValidationError):
            normalize_payload({"threadId": "thread-1", "fbThreadId": "fb-1"})

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            normalize_payload("hello")


class TestResultModels:
    def test_wire_format(self):
        result = SuggestionJobResult(job_id="job-1", status="failed", error="boom")
        wire = result.to_wire()
        assert set(wire) == {"jobId", "status", "suggestion", "error", "updatedAt"}
        assert result.is_terminal is True

    def test_pending_is_not_terminal(self):
        assert SuggestionJobResult(job_id="job-1", status="pending").is_terminal is False

    def test_suggestion_bounds(self):
        with pytest.raises(ValidationError):
            Suggestion(suggested_message="x" * 201, intent_score=0.5, reasoning="r", next_action="close")
        with pytest.raises(ValidationError):
            Suggestion(suggested_message="ok", intent_score=1.5, reasoning="r", next_action="close")
