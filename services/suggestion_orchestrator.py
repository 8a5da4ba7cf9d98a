"""
Suggestion request orchestration.

Drives one job through pending -> processing -> completed | failed, either
inside the request handler (inline mode) or from the queue worker (queued
mode). Both modes store and return the same SuggestionJobResult shape.
"""

import logging
import time
import uuid
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict
from redis.asyncio import Redis
from supabase import Client

from config.settings import Settings, get_settings
from constants.limits import MODEL_SERVICE_NAME
from constants.messages import ErrorMessages
from core.clients.model import ModelClient, get_model_client
from core.exceptions import (
    AppException,
    CircuitOpenError,
    InvalidFormatError,
    JobNotFoundError,
    PlanUpgradeRequiredError,
    StoreError,
)
from models.account import AccountPlan, AccountSettings, Identity, PlanTier
from models.suggestion import (
    SuggestionJobPayload,
    SuggestionJobResult,
    SuggestionRequest,
)
from services.circuit_breaker import CircuitBreaker
from services.database import get_account_settings, record_action, upsert_thread
from services.job_store import JobStore
from services.prompt_builder import PromptInput, build_prompt
from services.response_validator import parse_model_response
from services.suggestion_queue import SuggestionQueue

logger = logging.getLogger(__name__)

ExecutionMode = Literal["inline", "queued"]


class ClientMeta(BaseModel):
    """Request metadata recorded in the audit log."""

    model_config = ConfigDict(frozen=True)

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class SuggestionOrchestrator:
    """
    Composes plan gating, persistence, prompt building, the circuit breaker,
    the model client and response validation.

    Args:
        job_store: Job result cache
        breaker: Shared circuit breaker for the model
        model_client: Upstream model client
        mode: ``inline`` or ``queued`` (static configuration)
        queue: Required in queued mode
        max_tokens: Completion token cap per suggestion
        temperature: Sampling temperature
        db_client: Optional injected Supabase client
    """

    def __init__(
        self,
        job_store: JobStore,
        breaker: CircuitBreaker,
        model_client: ModelClient,
        mode: ExecutionMode = "inline",
        queue: Optional[SuggestionQueue] = None,
        max_tokens: int = 300,
        temperature: float = 0.0,
        db_client: Optional[Client] = None,
    ):
        if mode == "queued" and queue is None:
            raise ValueError("queued mode requires a SuggestionQueue")
        self.job_store = job_store
        self.breaker = breaker
        self.model_client = model_client
        self.mode = mode
        self.queue = queue
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.db_client = db_client

    # ------------------------------------------------------------------
    # Request side
    # ------------------------------------------------------------------

    async def submit(
        self,
        identity: Identity,
        request: SuggestionRequest,
        plan: AccountPlan,
        client_meta: Optional[ClientMeta] = None,
        request_id: Optional[str] = None,
    ) -> SuggestionJobResult:
        """
        Admit a suggestion request and start its job.

        Args:
            identity: Caller account and user
            request: Canonical suggestion request
            plan: Plan resolved at admission
            client_meta: IP / user agent for the audit log
            request_id: Correlation ID (generated when absent)

        Returns:
            Final result in inline mode, the ``pending`` result in queued mode

        Raises:
            PlanUpgradeRequiredError: Premium fields on a free-tier account
            StoreError: If thread metadata cannot be saved
        """
        client_meta = client_meta or ClientMeta()
        request_id = request_id or uuid.uuid4().hex

        if request.uses_premium_features and plan.plan == PlanTier.FREE:
            self.record_error(
                identity,
                "plan_upgrade_required",
                {"thread_id": request.thread_id, "request_id": request_id},
                client_meta,
            )
            raise PlanUpgradeRequiredError(ErrorMessages.PLAN_UPGRADE_REQUIRED)

        try:
            upsert_thread(
                identity.account_id,
                identity.user_id,
                request.fb_thread_id,
                {
                    "id": request.listing_id,
                    "title": request.listing_title,
                    "price": request.listing_price,
                    "url": request.listing_url,
                },
                client=self.db_client,
            )
        except StoreError as e:
            self.record_error(
                identity,
                "thread_upsert_failed",
                {
                    "error_code": e.error_code,
                    "error_message": e.message,
                    "thread_id": request.thread_id,
                    "fb_thread_id": request.fb_thread_id,
                    "request_id": request_id,
                },
                client_meta,
            )
            raise

        job_id = uuid.uuid4().hex
        self._audit(
            identity,
            "suggestion_requested",
            {
                "job_id": job_id,
                "request_id": request_id,
                "thread_id": request.thread_id,
                "fb_thread_id": request.fb_thread_id,
                "message_count": len(request.messages),
                "conversation_goal": request.conversation_goal,
                "mode": self.mode,
            },
            client_meta,
        )

        payload = SuggestionJobPayload(
            job_id=job_id,
            request_id=request_id,
            account_id=identity.account_id,
            user_id=identity.user_id,
            plan=plan.plan.value,
            request=request,
        )
        pending = SuggestionJobResult(job_id=job_id, status="pending")
        await self._store(identity.account_id, pending)

        if self.mode == "inline":
            return await self.process_job(payload)

        try:
            await self.queue.enqueue(payload)
        except StoreError as e:
            logger.error(f"Could not queue job {job_id}: {e.message}")
            failed = SuggestionJobResult(job_id=job_id, status="failed", error=e.message)
            await self._store(identity.account_id, failed)
            return failed

        return pending

    async def get_result(self, identity: Identity, job_id: str) -> SuggestionJobResult:
        """
        Raises:
            JobNotFoundError: If the job is unknown or expired
        """
        result = await self.job_store.get_result(identity.account_id, job_id)
        if result is None:
            raise JobNotFoundError()
        return result

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    async def process_job(self, payload: SuggestionJobPayload) -> SuggestionJobResult:
        """
        Run one job to completion or failure.

        Never raises for pipeline failures: the outcome is stored and
        returned as a ``completed`` or ``failed`` result. When the breaker
        state cannot be read the model is called anyway, and outcomes that
        cannot be recorded are logged.
        """
        started_at = time.monotonic()
        identity = Identity(account_id=payload.account_id, user_id=payload.user_id)
        request = payload.request

        await self._store(
            payload.account_id,
            SuggestionJobResult(job_id=payload.job_id, status="processing"),
        )

        try:
            prompt_input = self._prompt_input(payload)
        except StoreError as e:
            return await self._fail(payload, e, e.message, started_at)

        prompt = build_prompt(prompt_input)

        try:
            await self.breaker.assert_closed()
        except CircuitOpenError as e:
            return await self._fail(payload, e, ErrorMessages.CIRCUIT_OPEN, started_at)
        except StoreError as e:
            logger.warning(
                f"Circuit state unavailable for job {payload.job_id}, calling model anyway: {e.message}"
            )

        raw_content: Optional[str] = None
        try:
            response = await self.model_client.call(
                system=prompt.system_instruction,
                user_message=prompt.transcript,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            raw_content = response.content
            suggestion = parse_model_response(raw_content, prompt_input.conversation_goal)
        except InvalidFormatError as e:
            logger.warning(
                f"Invalid model output for job {payload.job_id}: {e.message} | raw={raw_content!r}"
            )
            await self._record_outcome(payload, success=False)
            return await self._fail(payload, e, e.message, started_at)
        except AppException as e:
            await self._record_outcome(payload, success=False)
            return await self._fail(payload, e, e.message, started_at)
        except Exception as e:
            logger.error(f"Unexpected failure in job {payload.job_id}", exc_info=True)
            await self._record_outcome(payload, success=False)
            return await self._fail(payload, e, str(e) or ErrorMessages.SUGGESTION_FAILED, started_at)

        await self._record_outcome(payload, success=True)

        result = SuggestionJobResult(
            job_id=payload.job_id,
            status="completed",
            suggestion=suggestion,
        )
        await self._store(payload.account_id, result)

        self._audit(
            identity,
            "suggestion_generated",
            {
                "job_id": payload.job_id,
                "request_id": payload.request_id,
                "thread_id": request.thread_id,
                "message_count": len(request.messages),
                "intent_score": suggestion.intent_score,
                "next_action": suggestion.next_action,
                "tokens_used": response.usage.total_tokens,
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
                "duration_ms": _elapsed_ms(started_at),
                "prompt_length": len(prompt.system_instruction) + len(prompt.transcript),
            },
        )
        logger.info(f"Suggestion job {payload.job_id} completed in {_elapsed_ms(started_at)}ms")
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _prompt_input(self, payload: SuggestionJobPayload) -> PromptInput:
        request = payload.request
        goal = request.conversation_goal
        global_instructions = None
        preset_instructions = None

        if payload.plan != PlanTier.FREE.value:
            account_settings: Optional[AccountSettings] = get_account_settings(
                payload.account_id, client=self.db_client
            )
            if account_settings is not None:
                global_instructions = account_settings.global_instructions
                if request.saved_preset_id:
                    preset = account_settings.find_preset(request.saved_preset_id)
                    if preset is None:
                        logger.warning(
                            f"Preset {request.saved_preset_id} not found for account {payload.account_id}"
                        )
                    else:
                        preset_instructions = preset.instructions
                        if preset.goal and goal == "general":
                            goal = preset.goal

        return PromptInput(
            conversation_goal=goal,
            messages=request.messages,
            listing_title=request.listing_title,
            listing_price=request.listing_price,
            listing_url=request.listing_url,
            global_instructions=global_instructions,
            preset_instructions=preset_instructions,
            custom_instructions=request.custom_instructions,
            quick_question=request.quick_question,
        )

    async def _fail(
        self,
        payload: SuggestionJobPayload,
        error: Exception,
        message: str,
        started_at: float,
    ) -> SuggestionJobResult:
        result = SuggestionJobResult(job_id=payload.job_id, status="failed", error=message)
        await self._store(payload.account_id, result)

        error_code = error.error_code if isinstance(error, AppException) else type(error).__name__
        self.record_error(
            Identity(account_id=payload.account_id, user_id=payload.user_id),
            "suggestion_generation_failed",
            {
                "error_code": error_code,
                "error_message": message,
                "job_id": payload.job_id,
                "request_id": payload.request_id,
                "duration_ms": _elapsed_ms(started_at),
            },
        )
        logger.warning(f"Suggestion job {payload.job_id} failed: {message}")
        return result

    async def _record_outcome(self, payload: SuggestionJobPayload, success: bool) -> None:
        try:
            if success:
                await self.breaker.record_success()
            else:
                await self.breaker.record_failure()
        except StoreError as e:
            logger.error(
                f"Could not record {'success' if success else 'failure'} "
                f"for job {payload.job_id}: {e.message}"
            )

    async def _store(self, account_id: str, result: SuggestionJobResult) -> None:
        try:
            await self.job_store.set_result(account_id, result.job_id, result)
        except StoreError as e:
            logger.error(f"Failed to store {result.status} result for job {result.job_id}: {e.details}")

    def record_error(
        self,
        identity: Identity,
        error_type: str,
        metadata: Dict[str, Any],
        client_meta: Optional[ClientMeta] = None,
    ) -> None:
        """Best-effort audit of a rejected or failed request."""
        self._audit(identity, "error", {"error_type": error_type, **metadata}, client_meta)

    def _audit(
        self,
        identity: Identity,
        action_type: str,
        metadata: Dict[str, Any],
        client_meta: Optional[ClientMeta] = None,
    ) -> None:
        client_meta = client_meta or ClientMeta()
        try:
            record_action(
                identity.account_id,
                identity.user_id,
                action_type,
                metadata,
                ip_address=client_meta.ip_address,
                user_agent=client_meta.user_agent,
                client=self.db_client,
            )
        except Exception as e:
            logger.error(f"Audit write failed ({action_type}) for account {identity.account_id}: {e}")


def _elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)


def create_orchestrator(
    redis: Redis,
    settings: Optional[Settings] = None,
    model_client: Optional[ModelClient] = None,
) -> SuggestionOrchestrator:
    """Wire an orchestrator from settings and the shared Redis client."""
    settings = settings or get_settings()
    return SuggestionOrchestrator(
        job_store=JobStore(redis),
        breaker=CircuitBreaker(redis, MODEL_SERVICE_NAME),
        model_client=model_client or get_model_client(),
        mode=settings.suggestion_mode,
        queue=SuggestionQueue(redis),
        max_tokens=settings.model_max_tokens,
        temperature=settings.model_temperature,
    )
