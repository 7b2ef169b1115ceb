"""Chat-completions LLM adapters built on the ``openai`` SDK.

:class:`ChatCompletionsProvider` holds the request/response handling shared
by every server that speaks the ``/v1/chat/completions`` protocol.
:class:`OpenAILLMProvider` points it at api.openai.com or, when
``OPENAI_BASE_URL`` is set, at any compatible vendor (TogetherAI, Groq,
Gemini's OpenAI endpoint).  The Ollama adapter reuses the same base.
"""

from __future__ import annotations

import openai
import structlog

from bookbuddy.config.settings import Settings
from bookbuddy.interfaces.llm_provider import ILLMProvider
from bookbuddy.utils.errors import LLMError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)


class ChatCompletionsProvider(ILLMProvider):
    """Shared ``complete`` over an :class:`openai.AsyncOpenAI` client.

    Parameters
    ----------
    client:
        A configured async client.
    label:
        Provider name for logs and errors.
    default_model:
        Model used when ``complete`` is called without one.
    """

    def __init__(self, client: openai.AsyncOpenAI, label: str, default_model: str) -> None:
        self._client = client
        self._label = label
        self._default_model = default_model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        model: str | None = None,
    ) -> str:
        model_name = model or self._default_model
        messages = [{"role": "user", "content": user_prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})

        try:
            response = await self._client.chat.completions.create(
                model=model_name,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"{self._label} throttled {model_name}",
                provider_name=self._label,
            ) from exc
        except openai.APITimeoutError as exc:
            raise LLMError(message=f"{self._label} timed out", provider_name=self._label) from exc
        except openai.APIError as exc:
            raise LLMError(message=f"{self._label} API error: {exc}", provider_name=self._label) from exc

        choice = response.choices[0] if response.choices else None
        text = choice.message.content if choice is not None else None
        if not text:
            raise LLMError(message=f"{self._label} returned empty response", provider_name=self._label)

        usage = getattr(response, "usage", None)
        logger.info(
            "llm_completion",
            provider=self._label,
            model=model_name,
            tokens=getattr(usage, "total_tokens", None),
        )
        return text

    def get_provider_name(self) -> str:
        return self._label


class OpenAILLMProvider(ChatCompletionsProvider):
    """OpenAI, or an OpenAI-compatible vendor when a base URL is configured.

    The default model is ``OPENAI_TEXT_MODEL`` or ``gpt-4o-mini``.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        options: dict = {
            "api_key": self._api_key,
            # Stays under the 30s request limit of most reverse proxies.
            "timeout": openai.Timeout(25.0, connect=5.0),
        }
        if settings.openai_base_url:
            options["base_url"] = settings.openai_base_url
        super().__init__(
            openai.AsyncOpenAI(**options),
            label="openai-compatible" if settings.openai_base_url else "openai",
            default_model=settings.openai_text_model or self.DEFAULT_MODEL,
        )

    def is_available(self) -> bool:
        return bool(self._api_key)
