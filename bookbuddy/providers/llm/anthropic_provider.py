"""Claude through the Anthropic Messages API.

The Messages API takes the system prompt as its own parameter and returns
a list of content blocks; text blocks are joined with newlines and any
other block type is dropped.
"""

from __future__ import annotations

import anthropic
import structlog

from bookbuddy.config.settings import Settings
from bookbuddy.interfaces.llm_provider import ILLMProvider
from bookbuddy.utils.errors import LLMError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)


class AnthropicLLMProvider(ILLMProvider):
    """First choice in provider selection whenever ``ANTHROPIC_API_KEY`` is set."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        model: str | None = None,
    ) -> str:
        model_name = model or self.DEFAULT_MODEL
        request: dict = {
            "model": model_name,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            response = await self._client.messages.create(**request)
        except anthropic.RateLimitError as exc:
            raise RateLimitError(
                message=f"anthropic throttled {model_name}", provider_name="anthropic"
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(message=f"anthropic API error: {exc}", provider_name="anthropic") from exc

        text = "\n".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise LLMError(message="anthropic returned no text content", provider_name="anthropic")

        logger.info(
            "llm_completion",
            provider="anthropic",
            model=model_name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return text

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key)
