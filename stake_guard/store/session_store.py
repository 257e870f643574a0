"""In-memory conversation session store with async-safe access and TTL expiry.

Design notes:
    - An asyncio.Lock guards the session mapping so a sweep may run while
      requests append turns.
    - The clock is injected so TTL logic is testable with a virtual clock.
    - Appends to one session are assumed to be serialized by the caller;
      the lock protects the mapping, not per-session turn ordering.
    - A session evicted between two operations surfaces as SessionNotFound
      on the next one.  ``append_turn`` never creates a session.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.errors import SessionNotFound
from stake_guard.domain.session import ChatMessage, ConversationSession
from stake_guard.foundation.clock import Clock, utc_now
from stake_guard.foundation.identifiers import new_session_id

logger = logging.getLogger(__name__)

WelcomeFactory = Callable[[ConversationSession], str]


def _default_welcome(session: ConversationSession) -> str:
    return "Hello! How can I help you with your staking today?"


class ConversationSessionStore:
    """Async-safe, in-memory store of ConversationSessions.

    Args:
        ttl: Idle duration after which a session is evicted by ``sweep``.
        clock: Source of "now"; defaults to the wall clock.
        welcome: Renders the single welcome message seeded into new sessions.
        id_prefix: Prefix of generated session ids (``<prefix>_<ms>_<rand>``).
        name: Label used in log lines.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
        welcome: WelcomeFactory | None = None,
        id_prefix: str = "conv",
        name: str = "sessions",
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._welcome = welcome or _default_welcome
        self._id_prefix = id_prefix
        self._name = name
        self._lock = asyncio.Lock()
        self._sessions: dict[str, ConversationSession] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    # ── Public API ───────────────────────────────────────────────────────

    async def get_or_create(
        self, session_id: str, wallet_address: Optional[str] = None
    ) -> ConversationSession:
        """Return the active session for *session_id*, creating it if absent.

        Existing sessions have their last-activity refreshed; new ones are
        seeded with exactly one welcome message.
        """
        async with self._lock:
            now = self._clock()
            session = self._sessions.get(session_id)
            if session is not None:
                session.touch(now)
                if wallet_address and not session.wallet_address:
                    session.wallet_address = wallet_address
                return session
            return self._insert(ConversationSession(session_id, now, wallet_address=wallet_address))

    async def create(
        self,
        wallet_address: Optional[str] = None,
        validator_address: Optional[str] = None,
        validator_name: Optional[str] = None,
        validator_context: Optional[RiskAssessment] = None,
    ) -> ConversationSession:
        """Create a session under a freshly generated id."""
        async with self._lock:
            now = self._clock()
            session_id = new_session_id(now, self._id_prefix)
            while session_id in self._sessions:
                session_id = new_session_id(now, self._id_prefix)
            return self._insert(ConversationSession(
                session_id,
                now,
                wallet_address=wallet_address,
                validator_address=validator_address,
                validator_name=validator_name,
                validator_context=validator_context,
            ))

    async def get(self, session_id: str) -> ConversationSession | None:
        async with self._lock:
            return self._sessions.get(session_id)

    async def require(self, session_id: str) -> ConversationSession:
        """Like ``get`` but raises SessionNotFound when absent."""
        session = await self.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def append_turn(self, session_id: str, message: ChatMessage) -> ConversationSession:
        """Append *message* to an active session.

        Raises:
            SessionNotFound: If the session is absent or has been evicted.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            session.append(message, self._clock())
            return session

    async def sweep(
        self, now: Optional[datetime] = None, ttl: Optional[timedelta] = None
    ) -> list[str]:
        """Evict every session idle for longer than *ttl*.

        Idempotent; returns the evicted ids.
        """
        async with self._lock:
            now = now or self._clock()
            ttl = ttl or self._ttl
            evicted = [sid for sid, s in self._sessions.items() if s.is_idle(now, ttl)]
            for sid in evicted:
                del self._sessions[sid]
            if evicted:
                logger.info("Evicted %d idle %s (ttl=%s)", len(evicted), self._name, ttl)
            return evicted

    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    # ── Internals ────────────────────────────────────────────────────────

    def _insert(self, session: ConversationSession) -> ConversationSession:
        session.append(ChatMessage.assistant(self._welcome(session), at=session.created_at), session.created_at)
        self._sessions[session.session_id] = session
        logger.info("Created %s entry %s", self._name, session.session_id)
        return session
