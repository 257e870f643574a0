"""Tests for the StakingAdvisor facade."""

from __future__ import annotations

from datetime import timedelta

import pytest

from stake_guard.assistant.templates import chat_welcome, conversation_welcome
from stake_guard.core.recommendation import RecommendationComposer
from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.domain.enums import BondStatus, CallbackResponseType, ReplySource, RiskLevel
from stake_guard.domain.errors import SessionNotFound
from stake_guard.domain.telemetry import Delegation
from stake_guard.services.advisor import DEMO_DELEGATIONS, STATIC_TOP_VALIDATORS, StakingAdvisor
from stake_guard.store.session_store import ConversationSessionStore

from tests.fakes import BASE_TIME, FakeTelemetrySource, VirtualClock, make_telemetry

JAILED = "seivaloper1jailed"
HEALTHY = "seivaloper1healthy"


def _source(**kwargs) -> FakeTelemetrySource:
    return FakeTelemetrySource(
        validators={
            JAILED: make_telemetry(address=JAILED, name="Jailbird", jailed=True, status=BondStatus.UNBONDED),
            HEALTHY: make_telemetry(address=HEALTHY, name="Healthy"),
        },
        **kwargs,
    )


def _advisor(source: FakeTelemetrySource, clock: VirtualClock | None = None) -> StakingAdvisor:
    clock = clock or VirtualClock()
    return StakingAdvisor(
        source=source,
        analyzer=IncidentAnalyzer(clock=lambda: BASE_TIME),
        composer=RecommendationComposer(),
        chat_store=ConversationSessionStore(
            ttl=timedelta(hours=24), clock=clock, welcome=chat_welcome, id_prefix="chat",
        ),
        conversation_store=ConversationSessionStore(
            ttl=timedelta(hours=1), clock=clock, welcome=conversation_welcome, id_prefix="conv",
        ),
    )


_DELEGATIONS = [
    Delegation(validator_address=JAILED, validator_name="Jailbird", shares="1000000000000000000000"),
    Delegation(validator_address=HEALTHY, validator_name="Healthy", shares="2500000000000000000000"),
]


class TestRecommendations:
    @pytest.mark.asyncio
    async def test_live_delegations(self) -> None:
        analysis = await _advisor(_source(delegations=_DELEGATIONS)).get_recommendations("sei1user")

        assert [r.validator_name for r in analysis.delegations] == ["Jailbird", "Healthy"]
        assert [r.staked_amount for r in analysis.delegations] == ["1,000 SEI", "2,500 SEI"]
        assert [r.risk_level for r in analysis.delegations] == [RiskLevel.RED, RiskLevel.GREEN]
        assert analysis.total_at_risk == "1,000 SEI"
        assert analysis.degraded is False

    @pytest.mark.asyncio
    async def test_demo_delegations_when_lookup_fails(self) -> None:
        analysis = await _advisor(_source(delegations=None)).get_recommendations("sei1user")

        assert [r.validator_name for r in analysis.delegations] == [d.validator_name for d in DEMO_DELEGATIONS]
        assert [r.staked_amount for r in analysis.delegations] == ["1,000 SEI", "500 SEI", "2,000 SEI"]
        assert analysis.degraded is True
        # demo validators are unknown to the source, so every assessment is estimated
        assert all(r.degraded for r in analysis.delegations)

    @pytest.mark.asyncio
    async def test_portfolio_summary(self) -> None:
        summary = await _advisor(_source(delegations=_DELEGATIONS)).get_portfolio_summary("sei1user")
        assert (summary.red_count, summary.yellow_count, summary.green_count) == (1, 0, 1)


class TestCallbacks:
    @pytest.mark.asyncio
    async def test_bogus_callback(self) -> None:
        response = await _advisor(_source()).handle_callback("bogus_verb_name", "sei1user")
        assert response.type == CallbackResponseType.ERROR

    @pytest.mark.asyncio
    async def test_incident_callback_resolves_known_validator(self) -> None:
        advisor = _advisor(_source(delegations=_DELEGATIONS))
        analysis = await advisor.get_recommendations("sei1user")
        callback_id = analysis.delegations[0].callbacks.incidents

        response = await advisor.handle_callback(callback_id, "sei1user")
        assert response.type == CallbackResponseType.INCIDENT_REPORT
        assert "Jailbird" in response.message
        assert "HIGH RISK" in response.message

    @pytest.mark.asyncio
    async def test_general_advice_counts_red(self) -> None:
        response = await _advisor(_source(delegations=_DELEGATIONS)).handle_callback("general_advice", "sei1user")
        assert "1 high-risk delegation(s)" in response.message

    @pytest.mark.asyncio
    async def test_redelegate_uses_static_ranking_when_chain_is_down(self) -> None:
        response = await _advisor(_source()).handle_callback("redelegate_jailbird", "sei1user")
        assert response.type == CallbackResponseType.REDELEGATE_GUIDE
        assert STATIC_TOP_VALIDATORS[0].name in response.message


class TestTopValidators:
    @pytest.mark.asyncio
    async def test_ranking_keeps_green_only(self) -> None:
        listing = [
            make_telemetry(address="a", name="Risky", commission_rate=0.2, tokens=10**12),
            make_telemetry(address="b", name="Big", tokens=9 * 10**9),
            make_telemetry(address="c", name="Small", tokens=10**9),
            make_telemetry(address="d", name="Capped", commission_max_rate=0.25, tokens=10**13),
        ]
        advisor = _advisor(_source(validator_list=listing))

        top = await advisor.top_validators()

        assert [v.name for v in top] == ["Big", "Small", "Capped"]
        assert advisor.cached_top_validators() == top

    @pytest.mark.asyncio
    async def test_failure_keeps_cache(self) -> None:
        advisor = _advisor(_source())
        assert await advisor.top_validators() == list(STATIC_TOP_VALIDATORS)


class TestSessions:
    @pytest.mark.asyncio
    async def test_conversation_lifecycle(self) -> None:
        advisor = _advisor(_source())
        session = await advisor.start_session(JAILED, "Jailbird", wallet_address="sei1user")

        assert session.session_id.startswith("conv_")
        assert session.validator_context is not None
        assert session.validator_context.current_score == 20
        assert "Jailbird" in session.messages[0].content

        turn = await advisor.send_message(session.session_id, "Is it jailed?")
        assert turn.source == ReplySource.FALLBACK
        assert "currently JAILED" in turn.message.content

        history = await advisor.get_conversation(session.session_id)
        assert history.message_count == 3

    @pytest.mark.asyncio
    async def test_conversation_for_unreachable_validator_is_estimated(self) -> None:
        session = await _advisor(_source()).start_session("seivaloper1gone", "hello")
        assert session.validator_context.degraded is True
        assert session.validator_context.current_score == 67

    @pytest.mark.asyncio
    async def test_chat_lifecycle(self) -> None:
        advisor = _advisor(_source())
        await advisor.open_chat("chat-1", "sei1wallet")

        turn = await advisor.send_message("chat-1", "hello")
        assert turn.topic == "greeting"
        assert "your staking positions" in turn.message.content
        assert (await advisor.get_conversation("chat-1")).message_count == 3

    @pytest.mark.asyncio
    async def test_chat_answers_portfolio_question(self) -> None:
        advisor = _advisor(_source(delegations=_DELEGATIONS))
        await advisor.open_chat("chat-1", "sei1user")
        assert advisor.cached_portfolio("sei1user") is not None

        turn = await advisor.send_message("chat-1", "analyze my delegations")

        assert turn.topic == "portfolio"
        assert "I found 1 high-risk delegation(s)" in turn.message.content
        assert "Jailbird (Score: 20)" in turn.message.content

    @pytest.mark.asyncio
    async def test_chat_without_wallet_asks_to_connect(self) -> None:
        advisor = _advisor(_source(delegations=_DELEGATIONS))
        await advisor.open_chat("chat-1")

        turn = await advisor.send_message("chat-1", "give me staking advice")

        assert "connect your wallet first" in turn.message.content

    @pytest.mark.asyncio
    async def test_chat_dispatches_named_validator(self) -> None:
        advisor = _advisor(_source(delegations=_DELEGATIONS))
        await advisor.open_chat("chat-1", "sei1user")

        turn = await advisor.send_message("chat-1", "What happened to Jailbird?")

        assert turn.topic == "incidents"
        assert "JAILBIRD" in turn.message.content
        assert "HIGH RISK" in turn.message.content

    @pytest.mark.asyncio
    async def test_conversation_keeps_topic_answers(self) -> None:
        advisor = _advisor(_source())
        session = await advisor.start_session(HEALTHY, "Healthy")

        turn = await advisor.send_message(session.session_id, "Should I unstake from Forbole?")

        assert turn.topic == "unstake"
        assert "To unstake from FORBOLE" not in turn.message.content

    @pytest.mark.asyncio
    async def test_unknown_session(self) -> None:
        advisor = _advisor(_source())
        with pytest.raises(SessionNotFound):
            await advisor.send_message("nope", "hello")
        with pytest.raises(SessionNotFound):
            await advisor.get_conversation("nope")
        assert await advisor.session_counts() == {"chat_sessions": 0, "conversations": 0}

    @pytest.mark.asyncio
    async def test_sweep_uses_each_store_ttl(self) -> None:
        clock = VirtualClock()
        advisor = _advisor(_source(), clock=clock)
        await advisor.open_chat("chat-1")
        await advisor.start_session(HEALTHY, "Healthy")

        clock.advance(hours=2)
        assert await advisor.sweep() == {"chat_sessions": 0, "conversations": 1}
        assert await advisor.session_counts() == {"chat_sessions": 1, "conversations": 0}

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        source = _source()
        await _advisor(source).close()
        assert source.closed is True
