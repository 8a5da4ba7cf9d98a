"""Tests for the HTTP surface."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import api.admin_router as admin_router
import api.settings_router as settings_router
import api.suggest_router as suggest_router
import main
from api.dependencies import get_current_identity, get_orchestrator, get_rate_limiter
from core.exceptions import AccountNotFoundError, JobNotFoundError, PlanUpgradeRequiredError, StoreError
from models.account import Identity, PlanTier
from models.suggestion import Suggestion, SuggestionJobResult
from services.rate_limiter import RateLimitDecision
from tests.conftest import make_plan

RESET_AT = 1_773_532_800_000

VALID_BODY = {
    "threadId": "thread-1",
    "fbThreadId": "fb-thread-1",
    "listingTitle": "Oak dining table",
    "conversationGoal": "sell_item",
    "messages": [
        {"senderId": "buyer", "text": "Is this still available?", "timestamp": 1700000000000, "isUser": False}
    ],
}


class StubLimiter:
    def __init__(self, allowed: bool = True, limit: int = 15, remaining: int = 14):
        self.decision = RateLimitDecision(allowed=allowed, limit=limit, remaining=remaining, reset_at=RESET_AT)
        self.calls = 0
        self.plans = []

    async def admit(self, account_id, plan):
        self.calls += 1
        self.plans.append(plan)
        return self.decision


def _completed(job_id: str = "job-1") -> SuggestionJobResult:
    return SuggestionJobResult(
        job_id=job_id,
        status="completed",
        suggestion=Suggestion(
            suggested_message="Yes, still available!",
            intent_score=0.9,
            reasoning="Buyer is interested.",
            next_action="ask_availability",
        ),
    )


@pytest.fixture
def limiter():
    return StubLimiter()


@pytest.fixture
def orchestrator():
    stub = MagicMock()
    stub.mode = "inline"
    stub.submit = AsyncMock(return_value=_completed())
    stub.get_result = AsyncMock(return_value=_completed())
    return stub


@pytest.fixture
def client(limiter, orchestrator, monkeypatch):
    monkeypatch.setattr(suggest_router, "resolve_account_plan", lambda account_id: make_plan(PlanTier.FREE))
    app = main.app
    app.dependency_overrides[get_current_identity] = lambda: Identity(account_id="acct-1", user_id="user-1")
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestCreateSuggestion:
    def test_inline_returns_completed_job(self, client, orchestrator):
        response = client.post("/suggest", json=VALID_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body["jobId"] == "job-1"
        assert body["status"] == "completed"
        assert body["suggestion"]["suggestedMessage"] == "Yes, still available!"
        assert body["suggestion"]["nextAction"] == "ask_availability"
        assert "updatedAt" in body

        assert response.headers["X-RateLimit-Limit"] == "15"
        assert response.headers["X-RateLimit-Remaining"] == "14"
        assert response.headers["X-RateLimit-Reset"] == str(RESET_AT)

        request = orchestrator.submit.await_args.args[1]
        assert request.fb_thread_id == "fb-thread-1"

    def test_queued_returns_accepted(self, client, orchestrator):
        orchestrator.mode = "queued"
        orchestrator.submit.return_value = SuggestionJobResult(job_id="job-2", status="pending")

        response = client.post("/suggest", json=VALID_BODY)

        assert response.status_code == 202
        assert response.json()["status"] == "pending"
        assert response.json()["suggestion"] is None

    def test_thread_context_shape_is_normalised(self, client, orchestrator):
        response = client.post(
            "/suggest",
            json={
                "threadId": "987654",
                "listingData": {"id": "123456", "title": "Desk", "price": 40},
                "messages": [{"senderType": "user", "text": "Hi!", "timestamp": 1700000000000}],
            },
        )

        assert response.status_code == 200
        request = orchestrator.submit.await_args.args[1]
        assert request.fb_thread_id == "987654"
        assert request.listing_url == "https://www.facebook.com/marketplace/item/123456"
        assert request.listing_price == "40"
        assert request.messages[0].is_user is True

    def test_malformed_body_is_rejected_without_consuming_quota(self, client, limiter, orchestrator):
        response = client.post("/suggest", json={"threadId": "thread-1", "fbThreadId": "fb-1"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["statusCode"] == 400
        assert "messages" in body["message"]
        assert limiter.calls == 0
        orchestrator.submit.assert_not_awaited()

    def test_non_object_body_rejected(self, client, limiter):
        response = client.post("/suggest", json=["not", "an", "object"])
        assert response.status_code == 400
        assert limiter.calls == 0

    def test_rate_limit_exceeded(self, client, limiter, orchestrator):
        limiter.decision = RateLimitDecision(allowed=False, limit=15, remaining=0, reset_at=RESET_AT)

        response = client.post("/suggest", json=VALID_BODY)

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "RATE_LIMIT_EXCEEDED"
        assert body["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["statusCode"] == 429
        assert "15" in body["message"]
        assert "timestamp" in body
        assert response.headers["X-RateLimit-Remaining"] == "0"
        orchestrator.submit.assert_not_awaited()
        identity, error_type, metadata, _ = orchestrator.record_error.call_args.args
        assert identity.account_id == "acct-1"
        assert error_type == "rate_limit_exceeded"
        assert metadata["limit"] == 15
        assert metadata["thread_id"] == "thread-1"

    def test_plan_upgrade_required_keeps_rate_headers(self, client, orchestrator):
        orchestrator.submit.side_effect = PlanUpgradeRequiredError(
            "Upgrade your plan to use custom instructions and saved presets."
        )

        response = client.post("/suggest", json={**VALID_BODY, "customInstructions": "Be nice"})

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "PLAN_UPGRADE_REQUIRED"
        assert body["error"] == "PLAN_UPGRADE_REQUIRED"
        assert response.headers["X-RateLimit-Limit"] == "15"

    def test_unknown_account(self, client, limiter, orchestrator, monkeypatch):
        def missing_account(account_id):
            raise AccountNotFoundError()

        monkeypatch.setattr(suggest_router, "resolve_account_plan", missing_account)

        response = client.post("/suggest", json=VALID_BODY)

        assert response.status_code == 404
        body = response.json()
        assert body["statusCode"] == 404
        assert body["message"] == "Account not found"
        assert limiter.calls == 0
        orchestrator.submit.assert_not_awaited()

    def test_plan_lookup_outage_continues_as_free(self, client, limiter, orchestrator, monkeypatch):
        def unreachable(account_id):
            raise StoreError("Failed to fetch account")

        monkeypatch.setattr(suggest_router, "resolve_account_plan", unreachable)

        response = client.post("/suggest", json=VALID_BODY)

        assert response.status_code == 200
        assert limiter.plans == [PlanTier.FREE]
        plan = orchestrator.submit.await_args.args[2]
        assert plan.plan == PlanTier.FREE

    def test_missing_token(self, orchestrator):
        app = main.app
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        try:
            response = TestClient(app).post("/suggest", json=VALID_BODY)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
        assert response.json()["statusCode"] == 401


class TestGetSuggestion:
    def test_returns_job(self, client, orchestrator):
        response = client.get("/suggest/job-1")

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        identity, job_id = orchestrator.get_result.await_args.args
        assert identity.account_id == "acct-1"
        assert job_id == "job-1"

    def test_unknown_job(self, client, orchestrator):
        orchestrator.get_result.side_effect = JobNotFoundError()

        response = client.get("/suggest/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["statusCode"] == 404
        assert body["message"] == "Suggestion job not found or expired"
        assert "code" not in body


class TestSettings:
    def test_free_plan_rejected(self, client, monkeypatch):
        saved = MagicMock()
        monkeypatch.setattr(settings_router, "resolve_account_plan", lambda account_id: make_plan(PlanTier.FREE))
        monkeypatch.setattr(settings_router, "upsert_account_settings", saved)

        response = client.post("/settings", json={"globalInstructions": "Be brief"})

        assert response.status_code == 403
        assert response.json()["code"] == "PLAN_UPGRADE_REQUIRED"
        saved.assert_not_called()

    def test_paid_plan_saves(self, client, monkeypatch):
        saved = MagicMock()
        monkeypatch.setattr(settings_router, "resolve_account_plan", lambda account_id: make_plan(PlanTier.PRO))
        monkeypatch.setattr(settings_router, "upsert_account_settings", saved)
        presets = [{"id": "p1", "name": "Weekend", "instructions": "Offer Saturday"}]

        response = client.post(
            "/settings", json={"globalInstructions": "Be brief", "goalPresets": presets}
        )

        assert response.status_code == 200
        saved.assert_called_once_with("acct-1", "Be brief", presets)

    def test_malformed_preset_rejected(self, client, monkeypatch):
        saved = MagicMock()
        monkeypatch.setattr(settings_router, "resolve_account_plan", lambda account_id: make_plan(PlanTier.PRO))
        monkeypatch.setattr(settings_router, "upsert_account_settings", saved)

        response = client.post("/settings", json={"goalPresets": [{"id": 5, "instructions": "x"}]})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        saved.assert_not_called()


class TestAdmin:
    def _settings(self, monkeypatch, key):
        monkeypatch.setattr(admin_router, "get_settings", lambda: SimpleNamespace(admin_api_key=key))

    def test_not_configured(self, client, monkeypatch):
        self._settings(monkeypatch, None)

        response = client.post("/admin/plan", json={"accountId": "acct-1", "plan": "pro"})

        assert response.status_code == 500
        assert response.json()["code"] == "ADMIN_NOT_CONFIGURED"

    def test_wrong_key(self, client, monkeypatch):
        self._settings(monkeypatch, "s3cret")

        response = client.post(
            "/admin/plan", json={"accountId": "acct-1", "plan": "pro"}, headers={"X-Admin-Key": "nope"}
        )

        assert response.status_code == 403
        assert response.json()["code"] == "ADMIN_UNAUTHORIZED"

    def test_sets_plan(self, client, monkeypatch):
        self._settings(monkeypatch, "s3cret")
        set_plan = MagicMock()
        monkeypatch.setattr(admin_router, "get_account", MagicMock())
        monkeypatch.setattr(admin_router, "set_account_plan", set_plan)

        response = client.post(
            "/admin/plan",
            json={"accountId": "acct-1", "plan": "pro", "planExpiresAt": "2026-12-31T00:00:00Z"},
            headers={"X-Admin-Key": "s3cret"},
        )

        assert response.status_code == 200
        assert response.json()["plan"] == "pro"
        args, kwargs = set_plan.call_args
        assert args == ("acct-1", PlanTier.PRO)
        assert kwargs["expires_at"].year == 2026


class TestHealth:
    def test_ok(self, client, monkeypatch):
        monkeypatch.setattr(main, "check_database_connection", lambda: True)
        monkeypatch.setattr(main, "check_redis_connection", AsyncMock(return_value=True))

        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["database"] is True
        assert body["redis"] is True

    def test_degraded(self, client, monkeypatch):
        monkeypatch.setattr(main, "check_database_connection", lambda: True)
        monkeypatch.setattr(main, "check_redis_connection", AsyncMock(return_value=False))

        assert client.get("/health").json()["status"] == "degraded"

    def test_root(self, client):
        assert client.get("/").status_code == 200
