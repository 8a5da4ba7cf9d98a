"""
Upstream language model client.

One call per suggestion, no client-side retries: retry policy belongs to the
orchestrator and the circuit breaker, not to the transport.
"""

import logging
from functools import lru_cache
from typing import Optional

from openai import APIError, APIStatusError, AsyncOpenAI
from pydantic import BaseModel, ConfigDict

from config.settings import get_settings
from core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class ModelUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int
    output_tokens: int
    total_tokens: int


class ModelResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    usage: ModelUsage


class ModelClient:
    """
    Thin wrapper around the chat completions API.

    Usage:
        client = get_model_client()
        response = await client.call(system="...", user_message="...")
        print(response.content, response.usage.total_tokens)
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        openai_client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self._client = openai_client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
        )

    async def call(
        self,
        system: str,
        user_message: str,
        max_tokens: int = 300,
        temperature: float = 0.0,
    ) -> ModelResponse:
        """
        Send one system + user turn to the model.

        Args:
            system: System instruction
            user_message: Rendered conversation transcript
            max_tokens: Completion token cap
            temperature: Sampling temperature

        Returns:
            ModelResponse with the text content and token usage

        Raises:
            UpstreamError: On non-2xx responses, transport failures,
                or a response without text content
        """
        logger.info(
            f"Model request: model={self.model} max_tokens={max_tokens} "
            f"system_length={len(system)} user_message_length={len(user_message)}"
        )

        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user_message},
                ],
            )
        except APIStatusError as e:
            logger.error(f"Model API returned {e.status_code}: {e.message}")
            raise UpstreamError(
                message=e.message or f"Model API error: {e.status_code}",
                details={"status_code": e.status_code},
            ) from e
        except APIError as e:
            logger.error(f"Model API call failed: {e}")
            raise UpstreamError(message=str(e) or "Model API call failed") from e

        choices = completion.choices or []
        content = choices[0].message.content if choices else None
        if not content:
            raise UpstreamError(message="Model returned non-text response")

        usage = completion.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        logger.debug(f"Model response: content_length={len(content)}")

        return ModelResponse(
            content=content,
            usage=ModelUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )


@lru_cache
def get_model_client() -> ModelClient:
    """
    Get cached model client instance.

    Returns:
        ModelClient: Client configured from settings
    """
    settings = get_settings()
    return ModelClient(
        api_key=settings.model_api_key,
        model=settings.model_name,
        base_url=settings.model_base_url,
    )
