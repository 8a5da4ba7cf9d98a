"""
Suggestion Router
Handles suggestion requests and job polling
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from api.dependencies import get_current_identity, get_orchestrator, get_rate_limiter
from constants.messages import ErrorMessages
from core.exceptions import AppException, RateLimitExceededError, StoreError
from models.account import AccountPlan, Identity, PlanTier
from models.suggestion import SuggestionJobResult, normalize_payload
from services.plan import resolve_account_plan
from services.rate_limiter import RateLimiter, rate_limit_headers
from services.suggestion_orchestrator import ClientMeta, SuggestionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suggest", tags=["Suggestions"])


@router.post(
    "",
    response_model=SuggestionJobResult,
    summary="Request a reply suggestion",
    description="Generate (inline mode) or queue (queued mode) a reply suggestion for a thread",
    responses={202: {"model": SuggestionJobResult, "description": "Job queued"}},
)
async def create_suggestion(
    request: Request,
    response: Response,
    payload: Dict[str, Any] = Body(...),
    identity: Identity = Depends(get_current_identity),
    limiter: RateLimiter = Depends(get_rate_limiter),
    orchestrator: SuggestionOrchestrator = Depends(get_orchestrator),
):
    """
    Request a reply suggestion.

    The body is validated before admission, so malformed requests never
    count against the daily quota. Accepts either the canonical request or
    the thread-context shape sent by the conversation watcher.
    """
    try:
        suggestion_request = normalize_payload(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e

    client_meta = ClientMeta(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    request_id = request.headers.get("x-request-id")

    try:
        plan = resolve_account_plan(identity.account_id)
    except StoreError as e:
        # fail open to the free tier
        logger.warning(
            f"Plan lookup failed for account {identity.account_id}, continuing as free: {e.message}"
        )
        plan = AccountPlan(plan=PlanTier.FREE, is_active=False)

    decision = await limiter.admit(identity.account_id, plan.plan)
    headers = rate_limit_headers(decision)

    if not decision.allowed:
        orchestrator.record_error(
            identity,
            "rate_limit_exceeded",
            {
                "thread_id": suggestion_request.thread_id,
                "plan": plan.plan.value,
                "limit": decision.limit,
                "count": decision.count,
                "request_id": request_id,
            },
            client_meta,
        )
        raise RateLimitExceededError(
            message=ErrorMessages.RATE_LIMIT_EXCEEDED.format(limit=decision.limit),
            details={"limit": decision.limit, "reset_at": decision.reset_at},
            headers=headers,
        )

    try:
        result = await orchestrator.submit(
            identity,
            suggestion_request,
            plan,
            client_meta=client_meta,
            request_id=request_id,
        )
    except AppException as e:
        # Admitted requests report quota headers even when they fail
        e.headers = {**headers, **(e.headers or {})}
        raise

    response.headers.update(headers)
    if orchestrator.mode == "queued":
        response.status_code = status.HTTP_202_ACCEPTED

    return result


@router.get(
    "/{job_id}",
    response_model=SuggestionJobResult,
    summary="Poll a suggestion job",
    description="Fetch the current state of a suggestion job owned by the caller's account",
)
async def get_suggestion(
    job_id: str,
    identity: Identity = Depends(get_current_identity),
    orchestrator: SuggestionOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_result(identity, job_id)
