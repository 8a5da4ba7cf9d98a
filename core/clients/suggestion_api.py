"""
Client for the suggestion API.

Used by integrations (and operators) that want the browser extension's
behaviour: submit a request, then poll the job until it settles.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from config.settings import get_settings
from core.clients.base import BaseAPIClient
from core.exceptions import (
    AppException,
    ExternalServiceError,
    JobNotFoundError,
    PlanUpgradeRequiredError,
    RateLimitExceededError,
    SuggestionTimeoutError,
    UnauthorizedError,
)
from models.suggestion import SuggestionJobResult, normalize_payload

logger = logging.getLogger(__name__)

_ERRORS_BY_CODE = {
    "RATE_LIMIT_EXCEEDED": RateLimitExceededError,
    "PLAN_UPGRADE_REQUIRED": PlanUpgradeRequiredError,
}

_ERRORS_BY_STATUS = {
    401: UnauthorizedError,
    404: JobNotFoundError,
}


class SuggestionAPIClient(BaseAPIClient):
    """
    Submit-and-poll client for ``/suggest``.

    Usage:
        client = SuggestionAPIClient("http://localhost:8000", token=access_token)
        result = await client.request_suggestion(payload)
        if result.status == "completed":
            print(result.suggestion.suggested_message)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        poll_interval: Optional[float] = None,
        poll_timeout: Optional[float] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings() if poll_interval is None or poll_timeout is None else None
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval_seconds
        self.poll_timeout = poll_timeout if poll_timeout is not None else settings.poll_timeout_seconds
        self._sleep = sleep
        self._clock = clock

    def _error_for(self, response: httpx.Response, url: str, method: str) -> AppException:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        details = {"status_code": response.status_code, "url": url, "method": method}
        error_class = _ERRORS_BY_CODE.get(body.get("code")) or _ERRORS_BY_STATUS.get(
            response.status_code
        )
        if error_class is None:
            return ExternalServiceError(
                message=body.get("message") or f"Suggestion API returned {response.status_code}",
                details=details,
            )

        rate_headers = {
            name: value
            for name, value in response.headers.items()
            if name.lower().startswith("x-ratelimit-")
        }
        return error_class(
            message=body.get("message"),
            details=details,
            headers=rate_headers or None,
        )

    async def submit(self, payload: Dict[str, Any]) -> SuggestionJobResult:
        """POST either payload shape, normalised to the canonical request."""
        request = normalize_payload(payload)
        data = await self.post("/suggest", json=request.to_wire(), expected_status=(200, 202))
        return SuggestionJobResult.model_validate(data)

    async def get_job(self, job_id: str) -> SuggestionJobResult:
        data = await self.get(f"/suggest/{job_id}")
        return SuggestionJobResult.model_validate(data)

    async def wait_for_result(self, job_id: str) -> SuggestionJobResult:
        """
        Poll a job every ``poll_interval`` until it is terminal.

        Raises:
            SuggestionTimeoutError: If ``poll_timeout`` elapses first
        """
        deadline = self._clock() + self.poll_timeout

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(f"Gave up waiting for job {job_id} after {self.poll_timeout}s")
                raise SuggestionTimeoutError(details={"job_id": job_id})

            await self._sleep(min(self.poll_interval, remaining))

            result = await self.get_job(job_id)
            if result.is_terminal:
                return result

    async def request_suggestion(self, payload: Dict[str, Any]) -> SuggestionJobResult:
        """
        Submit a request and wait for its terminal result.

        The POST is not retried; inline-mode responses are returned directly.

        Raises:
            pydantic.ValidationError: If the payload matches neither shape
            SuggestionTimeoutError: If the job does not settle in time
        """
        result = await self.submit(payload)
        if result.is_terminal:
            return result

        logger.debug(f"Job {result.job_id} is {result.status}, polling")
        return await self.wait_for_result(result.job_id)
