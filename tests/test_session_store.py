"""Tests for the ConversationSessionStore."""

from __future__ import annotations

from datetime import timedelta

import pytest

from stake_guard.assistant.templates import chat_welcome, conversation_welcome
from stake_guard.domain.enums import MessageRole
from stake_guard.domain.errors import SessionNotFound
from stake_guard.domain.session import ChatMessage
from stake_guard.store.session_store import ConversationSessionStore

from tests.fakes import VirtualClock


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def store(clock: VirtualClock) -> ConversationSessionStore:
    return ConversationSessionStore(ttl=timedelta(hours=24), clock=clock, welcome=chat_welcome, id_prefix="chat")


class TestGetOrCreate:
    @pytest.mark.asyncio
    async def test_fresh_session_has_exactly_one_welcome(self, store: ConversationSessionStore) -> None:
        session = await store.get_or_create("s1")
        assert session.message_count == 1
        welcome = session.messages[0]
        assert welcome.role == MessageRole.ASSISTANT
        assert "Connect your wallet" in welcome.content

    @pytest.mark.asyncio
    async def test_second_call_returns_same_session_and_touches(
        self, store: ConversationSessionStore, clock: VirtualClock
    ) -> None:
        first = await store.get_or_create("s1")
        clock.advance(minutes=5)
        second = await store.get_or_create("s1")
        assert first is second
        assert second.message_count == 1
        assert second.last_activity == clock.now

    @pytest.mark.asyncio
    async def test_wallet_is_recorded(self, store: ConversationSessionStore) -> None:
        session = await store.get_or_create("s1", wallet_address="sei1abcdefghijklmnop")
        assert session.wallet_address == "sei1abcdefghijklmnop"
        assert "sei1ab...mnop" in session.messages[0].content

    @pytest.mark.asyncio
    async def test_wallet_is_attached_later(self, store: ConversationSessionStore) -> None:
        await store.get_or_create("s1")
        session = await store.get_or_create("s1", wallet_address="sei1late")
        assert session.wallet_address == "sei1late"


class TestCreate:
    @pytest.mark.asyncio
    async def test_generated_ids_are_unique_and_prefixed(self, clock: VirtualClock) -> None:
        store = ConversationSessionStore(ttl=timedelta(hours=1), clock=clock, welcome=conversation_welcome)
        a = await store.create(validator_name="Four Pillars")
        b = await store.create(validator_name="Four Pillars")
        assert a.session_id != b.session_id
        assert a.session_id.startswith(f"conv_{int(clock.now.timestamp() * 1000)}_")
        assert "Four Pillars" in a.messages[0].content
        assert await store.count() == 2


class TestAppendAndIsolation:
    @pytest.mark.asyncio
    async def test_append_unknown_session_raises_and_creates_nothing(self, store: ConversationSessionStore) -> None:
        with pytest.raises(SessionNotFound):
            await store.append_turn("missing", ChatMessage.user("hi"))
        assert await store.count() == 0
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_require(self, store: ConversationSessionStore) -> None:
        with pytest.raises(SessionNotFound):
            await store.require("missing")
        await store.get_or_create("s1")
        assert (await store.require("s1")).session_id == "s1"

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, store: ConversationSessionStore) -> None:
        await store.get_or_create("a")
        await store.get_or_create("b")
        await store.append_turn("a", ChatMessage.user("only in a"))

        a = await store.require("a")
        b = await store.require("b")
        assert a.message_count == 2
        assert b.message_count == 1
        assert all(m.content != "only in a" for m in b.messages)


class TestSweep:
    @pytest.mark.asyncio
    async def test_evicts_only_idle_sessions(self, store: ConversationSessionStore, clock: VirtualClock) -> None:
        await store.get_or_create("old")
        clock.advance(hours=20)
        await store.get_or_create("fresh")
        clock.advance(hours=5)

        evicted = await store.sweep()
        assert evicted == ["old"]
        assert await store.get("old") is None
        assert await store.get("fresh") is not None

    @pytest.mark.asyncio
    async def test_activity_keeps_session_alive(self, store: ConversationSessionStore, clock: VirtualClock) -> None:
        await store.get_or_create("s1")
        clock.advance(hours=23)
        await store.append_turn("s1", ChatMessage.user("still here"))
        clock.advance(hours=23)
        assert await store.sweep() == []

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, store: ConversationSessionStore, clock: VirtualClock) -> None:
        await store.get_or_create("s1")
        clock.advance(hours=25)
        assert await store.sweep() == ["s1"]
        assert await store.sweep() == []

    @pytest.mark.asyncio
    async def test_explicit_ttl_override(self, store: ConversationSessionStore, clock: VirtualClock) -> None:
        await store.get_or_create("s1")
        clock.advance(minutes=90)
        assert await store.sweep(ttl=timedelta(hours=1)) == ["s1"]

    @pytest.mark.asyncio
    async def test_evicted_session_rejects_turns(self, store: ConversationSessionStore, clock: VirtualClock) -> None:
        await store.get_or_create("s1")
        clock.advance(hours=25)
        await store.sweep()
        with pytest.raises(SessionNotFound):
            await store.append_turn("s1", ChatMessage.user("hello?"))
