"""Tests for the HTTP surface, using FastAPI's TestClient against in-memory fakes."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from stake_guard.assistant.templates import chat_welcome, conversation_welcome
from stake_guard.core.recommendation import RecommendationComposer
from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.domain.enums import BondStatus
from stake_guard.domain.telemetry import Delegation
from stake_guard.main import _sweep_forever, create_app
from stake_guard.services.advisor import StakingAdvisor
from stake_guard.store.session_store import ConversationSessionStore

from tests.fakes import FakeTelemetrySource, make_telemetry

JAILED = "seivaloper1jailed"


@pytest.fixture
def source() -> FakeTelemetrySource:
    return FakeTelemetrySource(
        validators={JAILED: make_telemetry(address=JAILED, name="Jailbird", jailed=True, status=BondStatus.UNBONDED)},
        delegations=[Delegation(validator_address=JAILED, validator_name="Jailbird", shares="1000000000000000000000")],
    )


@pytest.fixture
def client(source: FakeTelemetrySource):
    advisor = StakingAdvisor(
        source=source,
        analyzer=IncidentAnalyzer(),
        composer=RecommendationComposer(),
        chat_store=ConversationSessionStore(ttl=timedelta(hours=24), welcome=chat_welcome, id_prefix="chat"),
        conversation_store=ConversationSessionStore(ttl=timedelta(hours=1), welcome=conversation_welcome),
    )
    with TestClient(create_app(advisor)) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "ai_provider": "none",
            "chat_sessions": 0,
            "conversations": 0,
        }

    def test_shutdown_closes_source(self, source: FakeTelemetrySource) -> None:
        advisor = StakingAdvisor(
            source=source,
            analyzer=IncidentAnalyzer(),
            composer=RecommendationComposer(),
            chat_store=ConversationSessionStore(),
            conversation_store=ConversationSessionStore(),
        )
        with TestClient(create_app(advisor)) as test_client:
            assert test_client.get("/health").status_code == 200
            assert source.closed is False
        assert source.closed is True


class TestAdvisorRoutes:
    def test_recommendations(self, client: TestClient) -> None:
        response = client.post("/api/advisor/recommendations", json={"user_address": "sei1user"})
        assert response.status_code == 200
        body = response.json()
        assert body["user_address"] == "sei1user"
        assert body["delegations"][0]["risk_level"] == "red"
        assert body["delegations"][0]["callbacks"]["unstake"] == "unstake_jailbird"
        assert body["total_at_risk"] == "1,000 SEI"

    def test_portfolio(self, client: TestClient) -> None:
        body = client.post("/api/advisor/portfolio", json={"user_address": "sei1user"}).json()
        assert body["red_count"] == 1
        assert body["insights"]["portfolio_risk_level"] == "high"

    def test_missing_field_is_422(self, client: TestClient) -> None:
        assert client.post("/api/advisor/recommendations", json={}).status_code == 422

    def test_bogus_callback(self, client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="stake_guard.api.advisor"):
            response = client.post(
                "/api/advisor/callback",
                json={"callback_id": "bogus_verb_name", "user_address": "sei1user"},
            )
        assert response.status_code == 200
        assert response.json()["type"] == "error"
        assert "Callback bogus_verb_name for sei1user answered with error" in caplog.text

    def test_incidents(self, client: TestClient) -> None:
        body = client.post("/api/advisor/incidents", json={"validator_address": JAILED}).json()
        assert body["assessment"]["current_score"] == 20
        assert body["headline"].startswith("🚨")
        assert body["ai_narrated"] is False


class TestSessionRoutes:
    def test_chat_flow(self, client: TestClient) -> None:
        opened = client.post("/api/chat/session", json={"session_id": "c1", "wallet_address": "sei1user"})
        assert opened.status_code == 200
        assert len(opened.json()["messages"]) == 1

        reply = client.post("/api/chat/message", json={"session_id": "c1", "message": "What's slashing?"})
        assert reply.status_code == 200
        assert reply.json()["topic"] == "slashing"
        assert reply.json()["source"] == "fallback"

    def test_unknown_session_is_404(self, client: TestClient) -> None:
        response = client.post("/api/chat/message", json={"session_id": "ghost", "message": "hello"})
        assert response.status_code == 404
        assert response.json()["error"] == "session_not_found"
        assert client.get("/health").json()["chat_sessions"] == 0

    def test_conversation_flow(self, client: TestClient) -> None:
        started = client.post(
            "/api/conversation/start",
            json={"validator_address": JAILED, "validator_name": "Jailbird"},
        )
        assert started.status_code == 200
        session_id = started.json()["session_id"]
        assert started.json()["validator_context"]["risk_level"] == "red"

        reply = client.post("/api/conversation/message", json={"session_id": session_id, "message": "should I unstake?"})
        assert reply.json()["topic"] == "unstake"

        history = client.get(f"/api/conversation/{session_id}").json()
        assert [m["role"] for m in history["messages"]] == ["assistant", "user", "assistant"]

    def test_unknown_conversation_is_404(self, client: TestClient) -> None:
        assert client.get("/api/conversation/conv_0_missing").status_code == 404


class TestSweeper:
    @pytest.mark.asyncio
    async def test_failed_sweep_keeps_loop_alive(self, caplog: pytest.LogCaptureFixture) -> None:
        class FlakyAdvisor:
            def __init__(self) -> None:
                self.calls = 0

            async def sweep(self) -> dict[str, int]:
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("store exploded")
                return {"chat_sessions": 0, "conversations": 0}

        advisor = FlakyAdvisor()
        task = asyncio.create_task(_sweep_forever(advisor, timedelta(milliseconds=1)))
        for _ in range(200):
            await asyncio.sleep(0.005)
            if advisor.calls >= 3:
                break
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert advisor.calls >= 3
        assert "Session sweep failed" in caplog.text
