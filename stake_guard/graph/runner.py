"""Graph runner — clean interface for invoking the incident-analysis graph.

Usage:
    runner = IncidentAnalysisRunner(source, analyzer, provider)
    analysis = await runner.run("seivaloper1...", name_hint="Four Pillars")

The runner compiles the graph once, seeds the initial state per call,
invokes LangGraph asynchronously and converts the final state into an
IncidentAnalysis.  It never raises for upstream outages.
"""

from __future__ import annotations

import logging
from typing import Optional

from stake_guard.adapters.base import TelemetrySource
from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.domain.analysis import IncidentAnalysis
from stake_guard.domain.assessment import RiskAssessment
from stake_guard.graph.builder import build_incident_graph
from stake_guard.graph.state import IncidentAnalysisState
from stake_guard.providers.base import CompletionProvider

logger = logging.getLogger(__name__)


class IncidentAnalysisRunner:

    def __init__(
        self,
        source: TelemetrySource,
        analyzer: IncidentAnalyzer,
        provider: Optional[CompletionProvider] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._graph = build_incident_graph(source, analyzer, provider, timeout)

    async def run(self, validator_address: str, name_hint: Optional[str] = None) -> IncidentAnalysis:
        initial_state: IncidentAnalysisState = {
            "validator_address": validator_address,
            "validator_name": name_hint,
        }

        logger.info("Running incident analysis for %s", validator_address)
        final_state = await self._graph.ainvoke(initial_state)

        assessment = RiskAssessment.model_validate(final_state["assessment"])
        logger.info(
            "Incident analysis complete: validator=%s score=%d ai_narrated=%s",
            assessment.validator_name,
            assessment.current_score,
            final_state.get("ai_narrated", False),
        )
        return IncidentAnalysis(
            assessment=assessment,
            headline=final_state["headline"],
            narrative=final_state["narrative"],
            ai_narrated=final_state.get("ai_narrated", False),
        )
