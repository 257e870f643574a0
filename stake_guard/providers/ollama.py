"""Local inference daemon provider (Ollama ``/api/chat``).

Request:
{
    "model": "llama3:8b",
    "messages": [{"role": "system", "content": "..."}, ...],
    "stream": false,
    "options": {"temperature": 0.7, "num_predict": 400}
}

Response:
{"message": {"role": "assistant", "content": "..."}, "done": true}
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from stake_guard.domain.errors import CompletionError
from stake_guard.providers.base import ChatMessages, CompletionProvider

logger = logging.getLogger(__name__)


class OllamaCompletionProvider(CompletionProvider):

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3:8b",
        temperature: float = 0.7,
        num_predict: int = 400,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/api/chat"
        self._model = model
        self._options = {"temperature": temperature, "num_predict": num_predict}
        self._timeout = timeout
        # The race deadline governs abandonment; the client timeout only bounds leaked sockets
        self._client = client or httpx.AsyncClient(timeout=timeout + 5.0)

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def default_timeout(self) -> float:
        return self._timeout

    async def complete(self, messages: ChatMessages) -> str:
        payload = {
            "model": self._model,
            "messages": messages,
            "stream": False,
            "options": self._options,
        }
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            raise CompletionError(self.name, f"{type(exc).__name__}: {exc}") from exc

        if response.status_code >= 400:
            raise CompletionError(self.name, f"HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise CompletionError(self.name, "response is not JSON") from exc

        content = ((data or {}).get("message") or {}).get("content", "")
        if not isinstance(content, str) or not content.strip():
            raise CompletionError(self.name, "empty response")
        logger.debug("Ollama response length: %d chars", len(content))
        return content

    async def close(self) -> None:
        await self._client.aclose()
