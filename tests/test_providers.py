"""Tests for completion providers, the bounded-time race and provider selection.

Gemini is mocked at the LangChain ``ainvoke`` level; Ollama is mocked
with respx.
"""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from stake_guard.config import Settings
from stake_guard.domain.errors import CompletionError
from stake_guard.providers.gemini import GeminiCompletionProvider, to_langchain_messages
from stake_guard.providers.ollama import OllamaCompletionProvider
from stake_guard.providers.race import complete_within
from stake_guard.providers.registry import UnknownProviderError, build_provider

from tests.fakes import FailingProvider, HangingProvider, ScriptedProvider

OLLAMA_URL = "http://ollama.test:11434"
_MESSAGES = [
    {"role": "system", "content": "You are helpful."},
    {"role": "user", "content": "Is my validator safe?"},
]


def _mock_llm(content) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=SimpleNamespace(content=content))
    return llm


class TestCompleteWithin:
    @pytest.mark.asyncio
    async def test_returns_stripped_text(self) -> None:
        assert await complete_within(ScriptedProvider("  hi  "), _MESSAGES) == "hi"

    @pytest.mark.asyncio
    async def test_error_becomes_none(self) -> None:
        assert await complete_within(FailingProvider(), _MESSAGES) is None

    @pytest.mark.asyncio
    async def test_blank_becomes_none(self) -> None:
        assert await complete_within(ScriptedProvider("\n  "), _MESSAGES) is None

    @pytest.mark.asyncio
    async def test_timeout_cancels_and_returns_none(self) -> None:
        provider = HangingProvider()
        result = await asyncio.wait_for(complete_within(provider, _MESSAGES, timeout=0.05), timeout=1.0)
        assert result is None
        for _ in range(5):
            await asyncio.sleep(0)
        assert provider.cancelled is True

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_none(self) -> None:
        class Exploding(ScriptedProvider):
            async def complete(self, messages):
                raise RuntimeError("kaboom")

        assert await complete_within(Exploding(), _MESSAGES) is None


class TestGeminiProvider:
    def test_message_conversion(self) -> None:
        converted = to_langchain_messages(_MESSAGES + [{"role": "assistant", "content": "Yes."}])
        assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage]
        assert converted[1].content == "Is my validator safe?"

    @pytest.mark.asyncio
    async def test_complete(self) -> None:
        llm = _mock_llm("Looks healthy.")
        provider = GeminiCompletionProvider(llm_factory=lambda: llm, timeout=2.0)

        assert await provider.complete(_MESSAGES) == "Looks healthy."
        assert provider.name == "gemini"
        assert provider.default_timeout == 2.0
        llm.ainvoke.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_llm_is_created_once(self) -> None:
        factory = MagicMock(return_value=_mock_llm("ok"))
        provider = GeminiCompletionProvider(llm_factory=factory)
        await provider.complete(_MESSAGES)
        await provider.complete(_MESSAGES)
        factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_list_content_is_joined(self) -> None:
        provider = GeminiCompletionProvider(llm_factory=lambda: _mock_llm(["Hello ", {"text": "there"}]))
        assert await provider.complete(_MESSAGES) == "Hello there"

    @pytest.mark.asyncio
    async def test_failures_raise_completion_error(self) -> None:
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("quota exceeded"))
        with pytest.raises(CompletionError):
            await GeminiCompletionProvider(llm_factory=lambda: llm).complete(_MESSAGES)

        with pytest.raises(CompletionError):
            await GeminiCompletionProvider(llm_factory=lambda: _mock_llm("   ")).complete(_MESSAGES)

    @pytest.mark.asyncio
    async def test_missing_api_key_raises_completion_error(self) -> None:
        def no_key():
            raise RuntimeError("Gemini API key not found")

        with pytest.raises(CompletionError):
            await GeminiCompletionProvider(llm_factory=no_key).complete(_MESSAGES)


class TestOllamaProvider:
    @pytest.mark.asyncio
    async def test_complete(self) -> None:
        provider = OllamaCompletionProvider(base_url=OLLAMA_URL, model="llama3:8b", timeout=2.0)
        with respx.mock:
            route = respx.post(f"{OLLAMA_URL}/api/chat").mock(
                return_value=httpx.Response(200, json={
                    "message": {"role": "assistant", "content": "Stay delegated."},
                    "done": True,
                })
            )
            text = await provider.complete(_MESSAGES)
        await provider.close()

        assert text == "Stay delegated."
        body = json.loads(route.calls.last.request.content)
        assert body["model"] == "llama3:8b"
        assert body["stream"] is False
        assert body["messages"] == _MESSAGES
        assert body["options"] == {"temperature": 0.7, "num_predict": 400}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="model not loaded"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"message": {"content": ""}}),
            httpx.Response(200, json={}),
        ],
    )
    async def test_bad_responses_raise(self, response: httpx.Response) -> None:
        provider = OllamaCompletionProvider(base_url=OLLAMA_URL)
        with respx.mock:
            respx.post(f"{OLLAMA_URL}/api/chat").mock(return_value=response)
            with pytest.raises(CompletionError):
                await provider.complete(_MESSAGES)

    @pytest.mark.asyncio
    async def test_connection_refused_raises(self) -> None:
        provider = OllamaCompletionProvider(base_url=OLLAMA_URL)
        with respx.mock:
            respx.post(f"{OLLAMA_URL}/api/chat").mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(CompletionError):
                await provider.complete(_MESSAGES)


class TestBuildProvider:
    def test_none(self) -> None:
        assert build_provider(Settings(ai_provider="none")) is None

    def test_gemini(self) -> None:
        provider = build_provider(Settings(ai_provider="gemini", ai_timeout_seconds=4.0))
        assert isinstance(provider, GeminiCompletionProvider)
        assert provider.default_timeout == 4.0

    def test_ollama_uses_local_timeout(self) -> None:
        provider = build_provider(Settings(ai_provider="Ollama", local_ai_timeout_seconds=12.0))
        assert isinstance(provider, OllamaCompletionProvider)
        assert provider.default_timeout == 12.0

    def test_unknown(self) -> None:
        with pytest.raises(UnknownProviderError):
            build_provider(Settings(ai_provider="gpt"))
