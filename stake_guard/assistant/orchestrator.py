"""AIFallbackOrchestrator — answers every user turn within a bounded time.

Protocol per turn:
    1. Append the user message (SessionNotFound propagates; nothing is created).
    2. If a completion provider is configured, send it the system prompt,
       the recent history and the new message, bounded by the timeout.
    3. A timed-out call is cancelled and abandoned; its late result is
       never appended.
    4. When the provider is absent, failed, timed out or returned blank
       text, the fallback answers deterministically: a request naming a
       validator ("unstake from X") goes to the callback handler when one
       is configured, anything else to the ordered topic table.
    5. Append the assistant message and return it.

Turn ordering within a session is the caller's responsibility: the
orchestrator assumes one in-flight turn per session.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from stake_guard.assistant import templates
from stake_guard.assistant.callbacks import CallbackHandler, action_from_text
from stake_guard.assistant.topics import ROUTES, TopicContext, TopicRoute, answer
from stake_guard.domain.enums import ReplySource
from stake_guard.domain.recommendation import PortfolioAnalysis, TopValidator
from stake_guard.domain.session import AssistantTurn, ChatMessage, ConversationSession
from stake_guard.foundation.clock import Clock, utc_now
from stake_guard.providers.base import ChatMessages, CompletionProvider
from stake_guard.providers.race import complete_within
from stake_guard.store.session_store import ConversationSessionStore

logger = logging.getLogger(__name__)


def _no_top_validators() -> list[TopValidator]:
    return []


def _no_portfolio(wallet_address: str) -> Optional[PortfolioAnalysis]:
    return None


class AIFallbackOrchestrator:
    """Races an optional completion provider against a deadline per turn.

    Args:
        store: Session store the turns are appended to.
        provider: Optional completion provider; None means fallback only.
        timeout: Deadline in seconds; defaults to the provider's own.
        history_window: Number of prior non-system messages sent upstream.
        top_validators: Cached redelegation candidates for topic answers.
        portfolio: Last known portfolio analysis of a wallet, if any.
        callbacks: Handler for requests that name a validator; None leaves
            them to the topic table.
        routes: Ordered topic table; first match wins.
        clock: Source of message timestamps.
    """

    def __init__(
        self,
        store: ConversationSessionStore,
        provider: Optional[CompletionProvider] = None,
        timeout: Optional[float] = None,
        history_window: int = 8,
        top_validators: Callable[[], list[TopValidator]] = _no_top_validators,
        portfolio: Callable[[str], Optional[PortfolioAnalysis]] = _no_portfolio,
        callbacks: Optional[CallbackHandler] = None,
        routes: tuple[TopicRoute, ...] = ROUTES,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._provider = provider
        self._timeout = timeout
        self._history_window = history_window
        self._top_validators = top_validators
        self._portfolio = portfolio
        self._callbacks = callbacks
        self._routes = routes
        self._clock = clock

    @property
    def provider_name(self) -> str:
        return self._provider.name if self._provider else "none"

    # ── Public API ───────────────────────────────────────────────────────

    async def respond(self, session_id: str, text: str) -> AssistantTurn:
        """Produce and append the assistant turn for *text*.

        Raises:
            SessionNotFound: If the session is absent or was evicted mid-turn.
        """
        session = await self._store.append_turn(session_id, ChatMessage.user(text, at=self._clock()))
        ctx = self.context_for(session)

        reply: Optional[str] = None
        if self._provider is not None:
            reply = await complete_within(self._provider, self.build_messages(session, ctx), self._timeout)

        if reply is not None:
            source, topic = ReplySource.AI, None
        else:
            topic, reply = await self._fallback(session, text, ctx)
            source = ReplySource.FALLBACK
            logger.info("Session %s answered by fallback topic '%s'", session_id, topic)

        message = ChatMessage.assistant(reply, at=self._clock())
        await self._store.append_turn(session_id, message)
        return AssistantTurn(
            session_id=session_id,
            message=message,
            source=source,
            topic=topic,
            degraded=source == ReplySource.FALLBACK and self._provider is not None,
        )

    # ── Prompt assembly ──────────────────────────────────────────────────

    def context_for(self, session: ConversationSession) -> TopicContext:
        return TopicContext(
            validator_name=session.validator_name,
            validator_address=session.validator_address,
            assessment=session.validator_context,
            wallet_address=session.wallet_address,
            top_validators=self._top_validators(),
            portfolio=self._portfolio(session.wallet_address) if session.wallet_address else None,
        )

    def build_messages(self, session: ConversationSession, ctx: TopicContext) -> ChatMessages:
        block = templates.validator_context_block(
            ctx.validator_name, ctx.validator_address, ctx.assessment, ctx.wallet_address
        )
        messages: ChatMessages = [{"role": "system", "content": templates.system_prompt(block)}]
        messages.extend(
            {"role": m.role.value, "content": m.content}
            for m in session.history(self._history_window)
        )
        return messages

    # ── Fallback ─────────────────────────────────────────────────────────

    async def _fallback(self, session: ConversationSession, text: str, ctx: TopicContext) -> tuple[str, str]:
        action = action_from_text(text) if self._callbacks is not None else None
        if action is None:
            return answer(text, ctx, self._routes)
        response = await self._callbacks.handle(action.callback_id, session.wallet_address or session.session_id)
        return action.verb.value, response.message
