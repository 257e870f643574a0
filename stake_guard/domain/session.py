"""ConversationSession — an ordered chat history owned by the session store.

Lifecycle:  absent → active → active(updated) → evicted
    - active:  created on first access, refreshed on every turn
    - evicted: removed by the store's sweep once idle beyond its TTL

Thread-safety note:
    Sessions are mutated only by the ConversationSessionStore.  The store
    assumes a single in-flight turn per session; sessions are not locked.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.enums import MessageRole, ReplySource
from stake_guard.foundation.clock import utc_now
from stake_guard.foundation.identifiers import new_id


class ChatMessage(BaseModel):
    message_id: str = Field(default_factory=new_id)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}

    @classmethod
    def user(cls, content: str, at: datetime | None = None) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content, timestamp=at or utc_now())

    @classmethod
    def assistant(cls, content: str, at: datetime | None = None) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, content=content, timestamp=at or utc_now())


class AssistantTurn(BaseModel):
    """The assistant message appended for one user turn, plus how it was produced."""

    session_id: str
    message: ChatMessage
    source: ReplySource
    topic: Optional[str] = None
    degraded: bool = False

    model_config = {"frozen": True}


class ConversationSession:
    """A mutable, keyed message history with an activity clock."""

    __slots__ = (
        "session_id",
        "wallet_address",
        "validator_address",
        "validator_name",
        "validator_context",
        "created_at",
        "last_activity",
        "_messages",
    )

    def __init__(
        self,
        session_id: str,
        now: datetime,
        wallet_address: str | None = None,
        validator_address: str | None = None,
        validator_name: str | None = None,
        validator_context: RiskAssessment | None = None,
    ) -> None:
        self.session_id = session_id
        self.wallet_address = wallet_address
        self.validator_address = validator_address
        self.validator_name = validator_name
        self.validator_context = validator_context
        self.created_at = now
        self.last_activity = now
        self._messages: list[ChatMessage] = []

    # ── Mutation ─────────────────────────────────────────────────────────

    def append(self, message: ChatMessage, now: datetime) -> None:
        self._messages.append(message)
        self.last_activity = now

    def touch(self, now: datetime) -> None:
        self.last_activity = now

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def messages(self) -> list[ChatMessage]:
        """Read-only view of the history."""
        return list(self._messages)

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def history(self, window: int) -> list[ChatMessage]:
        """The last *window* non-system messages, oldest first."""
        visible = [m for m in self._messages if m.role != MessageRole.SYSTEM]
        return visible[-window:] if window > 0 else []

    def is_idle(self, now: datetime, ttl: timedelta) -> bool:
        return self.last_activity < now - ttl

    def summary(self) -> dict:
        return {
            "session_id": self.session_id,
            "wallet_address": self.wallet_address,
            "validator_address": self.validator_address,
            "validator_name": self.validator_name,
            "messages": [
                m.model_dump(mode="json")
                for m in self._messages
                if m.role != MessageRole.SYSTEM
            ],
            "last_activity": self.last_activity.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"ConversationSession(id={self.session_id}, "
            f"messages={self.message_count}, "
            f"last_activity={self.last_activity.isoformat()})"
        )
