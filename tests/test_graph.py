"""Tests for the LangGraph incident-analysis pipeline.

Telemetry comes from an in-memory source and completion providers are
test doubles, so the graph runs without network access.
"""

from __future__ import annotations

import pytest

from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.domain.enums import BondStatus, RiskLevel
from stake_guard.explain.narrative import HEADLINES, build_narrative
from stake_guard.graph.builder import build_incident_graph
from stake_guard.graph.nodes import UNKNOWN_VALIDATOR, make_assess, narrate
from stake_guard.graph.runner import IncidentAnalysisRunner

from tests.fakes import (
    BASE_TIME,
    FailingProvider,
    FakeTelemetrySource,
    ScriptedProvider,
    make_telemetry,
)

JAILED = "seivaloper1jailed"
HEALTHY = "seivaloper1healthy"


@pytest.fixture
def analyzer() -> IncidentAnalyzer:
    return IncidentAnalyzer(clock=lambda: BASE_TIME)


@pytest.fixture
def source() -> FakeTelemetrySource:
    return FakeTelemetrySource(validators={
        JAILED: make_telemetry(address=JAILED, name="Jailbird", jailed=True, status=BondStatus.UNBONDED),
        HEALTHY: make_telemetry(address=HEALTHY, name="Healthy"),
    })


class TestNodes:
    def test_assess_uses_fallback_without_telemetry(self, analyzer: IncidentAnalyzer) -> None:
        update = make_assess(analyzer)({"validator_address": "seivaloper1x", "telemetry": None})
        assessment = update["assessment"]
        assert assessment["validator_name"] == UNKNOWN_VALIDATOR
        assert assessment["degraded"] is True

    def test_narrate_is_deterministic(self, analyzer: IncidentAnalyzer) -> None:
        assessment = analyzer.analyze(make_telemetry(jailed=True))
        state = {"assessment": assessment.model_dump()}
        assert narrate(state) == narrate(state)
        assert narrate(state)["ai_narrated"] is False


class TestNarrative:
    def test_red_narrative(self, analyzer: IncidentAnalyzer) -> None:
        text = build_narrative(analyzer.analyze(make_telemetry(jailed=True, status=BondStatus.UNBONDED)))
        assert "Critical Risk Analysis" in text
        assert "Validator was jailed" in text
        assert "NOT earning rewards" in text
        assert "**UNSTAKE IMMEDIATELY**" in text

    def test_green_narrative(self, analyzer: IncidentAnalyzer) -> None:
        text = build_narrative(analyzer.analyze(make_telemetry()))
        assert "No critical issues detected" in text
        assert "Risk Factors (0)" in text
        assert "deterministic estimate" not in text

    def test_degraded_note(self, analyzer: IncidentAnalyzer) -> None:
        text = build_narrative(analyzer.fallback("seivaloper1x", "Enigma"))
        assert "deterministic estimate" in text


class TestGraph:
    def test_graph_compiles(self, source: FakeTelemetrySource, analyzer: IncidentAnalyzer) -> None:
        assert build_incident_graph(source, analyzer) is not None
        assert build_incident_graph(source, analyzer, ScriptedProvider()) is not None

    @pytest.mark.asyncio
    async def test_live_telemetry(self, source: FakeTelemetrySource, analyzer: IncidentAnalyzer) -> None:
        analysis = await IncidentAnalysisRunner(source, analyzer).run(JAILED)

        assert analysis.assessment.validator_name == "Jailbird"
        assert analysis.assessment.current_score == 20
        assert analysis.assessment.risk_level == RiskLevel.RED
        assert analysis.headline == HEADLINES[RiskLevel.RED]
        assert analysis.narrative == build_narrative(analysis.assessment)
        assert analysis.ai_narrated is False
        assert analysis.analysis_id.startswith("incident_")

    @pytest.mark.asyncio
    async def test_unreachable_validator_uses_name_hint(
        self, source: FakeTelemetrySource, analyzer: IncidentAnalyzer
    ) -> None:
        analysis = await IncidentAnalysisRunner(source, analyzer).run("seivaloper1gone", name_hint="hello")

        assert analysis.assessment.degraded is True
        assert analysis.assessment.validator_name == "hello"
        assert analysis.assessment.current_score == 67
        assert analysis.headline == HEADLINES[RiskLevel.YELLOW]

    @pytest.mark.asyncio
    async def test_provider_rephrases(self, source: FakeTelemetrySource, analyzer: IncidentAnalyzer) -> None:
        provider = ScriptedProvider("Friendly summary.")
        analysis = await IncidentAnalysisRunner(source, analyzer, provider, timeout=1.0).run(HEALTHY)

        assert analysis.ai_narrated is True
        assert analysis.narrative == "Friendly summary."
        assert analysis.headline == HEADLINES[RiskLevel.GREEN]
        prompt = provider.calls[0][0]["content"]
        assert "Healthy Validator Analysis" in prompt

    @pytest.mark.asyncio
    async def test_failed_rephrase_keeps_narrative(
        self, source: FakeTelemetrySource, analyzer: IncidentAnalyzer
    ) -> None:
        analysis = await IncidentAnalysisRunner(source, analyzer, FailingProvider(), timeout=1.0).run(HEALTHY)

        assert analysis.ai_narrated is False
        assert analysis.narrative == build_narrative(analysis.assessment)
