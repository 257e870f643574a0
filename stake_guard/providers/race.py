"""Bounded-time completion — races a provider call against a deadline.

Protocol:
    1. The provider call runs as its own task.
    2. The caller waits at most ``timeout`` seconds for it.
    3. On timeout the task is cancelled and abandoned; the caller does not
       wait for the cancellation to finish.  A late result is discarded.
    4. Errors, timeouts and blank output all collapse to ``None`` so the
       caller can take its deterministic path.

Abandoned tasks are kept in a module-level set until they settle so they
are not garbage-collected mid-flight and their exceptions are retrieved.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from stake_guard.domain.errors import CompletionError
from stake_guard.providers.base import ChatMessages, CompletionProvider

logger = logging.getLogger(__name__)

_abandoned: set[asyncio.Task] = set()


def _settle(task: asyncio.Task) -> None:
    _abandoned.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Abandoned completion finished with %r", task.exception())


def _abandon(task: asyncio.Task) -> None:
    task.cancel()
    _abandoned.add(task)
    task.add_done_callback(_settle)


def abandoned_count() -> int:
    return len(_abandoned)


async def complete_within(
    provider: CompletionProvider,
    messages: ChatMessages,
    timeout: Optional[float] = None,
) -> Optional[str]:
    """Return the provider's text, or None on timeout, error or blank output."""
    deadline = provider.default_timeout if timeout is None else timeout
    task = asyncio.create_task(provider.complete(messages), name=f"completion:{provider.name}")

    try:
        done, _ = await asyncio.wait({task}, timeout=deadline)
    finally:
        if not task.done():
            _abandon(task)

    if not done:
        logger.warning("Completion provider '%s' timed out after %.1fs", provider.name, deadline)
        return None

    try:
        text = task.result()
    except CompletionError as exc:
        logger.warning("%s — using fallback", exc)
        return None
    except Exception as exc:
        logger.warning(
            "Completion provider '%s' raised %s: %s — using fallback",
            provider.name, type(exc).__name__, exc,
        )
        return None

    if not text or not text.strip():
        logger.warning("Completion provider '%s' returned empty output — using fallback", provider.name)
        return None
    return text.strip()
