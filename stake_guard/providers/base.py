"""Abstract completion provider.

A provider turns a chat-shaped message list into text.  It is a
best-effort collaborator: callers never await it directly but go through
``complete_within`` so a slow or hung backend cannot stall a request.

Rules:
    1. ``complete`` raises CompletionError for every failure it can detect.
    2. Providers hold no per-session state.
    3. Messages are plain ``{"role": ..., "content": ...}`` dicts with
       roles ``system``, ``user`` or ``assistant``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

ChatMessages = list[dict[str, str]]


class CompletionProvider(ABC):

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def default_timeout(self) -> float:
        """Seconds a caller should wait before abandoning a request."""
        return 5.0

    @abstractmethod
    async def complete(self, messages: ChatMessages) -> str:
        """Return the completion text.

        Raises:
            CompletionError: If the backend failed or returned nothing usable.
        """
        ...

    async def close(self) -> None:
        return None
