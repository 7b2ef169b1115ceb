"""Interface for the chat models that write answers and route queries.

Two kinds of call go through it: the one-word CHAT/SEARCH routing prompt
and the grounded answer prompt.  Both are a single system + user exchange,
so the contract is one ``complete`` call.  Model fallback lives above the
provider in :class:`~bookbuddy.services.generation_service.GenerationService`,
which passes each model of its chain through the ``model`` argument.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Implemented in bookbuddy/providers/llm/: Anthropic, OpenAI(-compatible), Ollama.
class ILLMProvider(ABC):
    """A text-in, text-out chat model."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        model: str | None = None,
    ) -> str:
        """Run one system + user exchange and return the reply text.

        ``model`` overrides the provider's default model for this call only.

        Raises
        ------
        bookbuddy.utils.errors.RateLimitError
            If the vendor throttled the request.
        bookbuddy.utils.errors.LLMError
            On any other API failure or an empty reply.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Short label used in logs, errors and ``/health``."""

    @abstractmethod
    def is_available(self) -> bool:
        """``True`` when the provider is configured; no network call is made."""
