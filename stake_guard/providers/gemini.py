"""Cloud completion provider backed by Gemini through LangChain."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from stake_guard.config import settings
from stake_guard.domain.errors import CompletionError
from stake_guard.providers.base import ChatMessages, CompletionProvider

logger = logging.getLogger(__name__)

LLMFactory = Callable[[], Any]

_ROLE_TO_MESSAGE = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def default_llm_factory():
    """Create a Gemini chat model from environment config."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    api_key = os.environ.get("GOOGLE_API_KEY") or os.environ.get("STAKE_GUARD_GEMINI_API_KEY")
    if not api_key:
        raise RuntimeError(
            "Gemini API key not found. Set GOOGLE_API_KEY or STAKE_GUARD_GEMINI_API_KEY "
            "in your environment variables."
        )

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=api_key,
        temperature=settings.gemini_temperature,
        max_output_tokens=settings.gemini_max_output_tokens,
    )


def to_langchain_messages(messages: ChatMessages) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for message in messages:
        cls = _ROLE_TO_MESSAGE.get(message.get("role", "user"), HumanMessage)
        converted.append(cls(content=message.get("content", "")))
    return converted


class GeminiCompletionProvider(CompletionProvider):
    """Synchronous request/response cloud provider."""

    def __init__(self, llm_factory: LLMFactory | None = None, timeout: float = 5.0) -> None:
        self._llm_factory = llm_factory or default_llm_factory
        self._timeout = timeout
        self._llm = None

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def default_timeout(self) -> float:
        return self._timeout

    async def complete(self, messages: ChatMessages) -> str:
        try:
            if self._llm is None:
                self._llm = self._llm_factory()
            response = await self._llm.ainvoke(to_langchain_messages(messages))
        except Exception as exc:
            raise CompletionError(self.name, f"{type(exc).__name__}: {exc}") from exc

        text = response.content if hasattr(response, "content") else str(response)
        if isinstance(text, list):
            text = "".join(part if isinstance(part, str) else part.get("text", "") for part in text)
        logger.debug("Gemini response length: %d chars", len(text))
        if not text.strip():
            raise CompletionError(self.name, "empty response")
        return text
