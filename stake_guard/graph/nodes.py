"""LangGraph nodes for validator incident analysis.

Each node:
    - Receives the full IncidentAnalysisState
    - Returns a partial dict update
    - Never raises for upstream outages: a failed telemetry fetch yields a
      deterministic fallback assessment, a failed rephrase keeps the
      deterministic narrative

Provider usage:
    rephrase_narrative sends ONLY the deterministic narrative to the
    completion provider and asks for a rewording.  It cannot add facts.
"""

from __future__ import annotations

import logging
from typing import Optional

from stake_guard.adapters.base import TelemetrySource
from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.errors import TelemetryUnavailable
from stake_guard.domain.telemetry import ValidatorTelemetry
from stake_guard.explain.narrative import build_narrative, headline_for
from stake_guard.graph.state import IncidentAnalysisState
from stake_guard.providers.base import CompletionProvider
from stake_guard.providers.race import complete_within

logger = logging.getLogger(__name__)

UNKNOWN_VALIDATOR = "Unknown Validator"

_REPHRASE_PROMPT = """You are a staking risk report formatter.  Rephrase the
following validator analysis into clear, friendly markdown for a delegator.

STRICT RULES:
- Use ONLY the information provided below
- Do NOT add facts, numbers, validators or speculation not present in the input
- Keep every recommended action
- Keep it under 250 words

Analysis:
{narrative}"""


# ── 1. fetch_telemetry ──────────────────────────────────────────────────────

def make_fetch_telemetry(source: TelemetrySource):
    """Create the fetch node bound to a telemetry source."""

    async def fetch_telemetry(state: IncidentAnalysisState) -> dict:
        address = state["validator_address"]
        try:
            telemetry = await source.fetch_validator(address)
        except TelemetryUnavailable as exc:
            logger.warning("%s — using fallback assessment", exc)
            return {"telemetry": None, "fetch_error": exc.reason}
        return {"telemetry": telemetry.model_dump(), "fetch_error": None}

    return fetch_telemetry


# ── 2. assess ───────────────────────────────────────────────────────────────

def make_assess(analyzer: IncidentAnalyzer):
    """Create the scoring node bound to an analyzer."""

    def assess(state: IncidentAnalysisState) -> dict:
        raw = state.get("telemetry")
        if raw is not None:
            assessment = analyzer.analyze(ValidatorTelemetry.model_validate(raw))
        else:
            assessment = analyzer.fallback(
                state["validator_address"],
                state.get("validator_name") or UNKNOWN_VALIDATOR,
            )
        logger.info(
            "Assessed %s: score=%d level=%s incidents=%d degraded=%s",
            assessment.validator_name,
            assessment.current_score,
            assessment.risk_level.value,
            len(assessment.incidents),
            assessment.degraded,
        )
        return {"assessment": assessment.model_dump()}

    return assess


# ── 3. narrate ──────────────────────────────────────────────────────────────

def narrate(state: IncidentAnalysisState) -> dict:
    """Deterministic headline and narrative from the assessment."""
    assessment = RiskAssessment.model_validate(state["assessment"])
    return {
        "headline": headline_for(assessment),
        "narrative": build_narrative(assessment),
        "ai_narrated": False,
    }


# ── 4. rephrase_narrative (optional) ────────────────────────────────────────

def make_rephrase_narrative(provider: CompletionProvider, timeout: Optional[float] = None):
    """Create the optional rephrasing node bound to a completion provider."""

    async def rephrase_narrative(state: IncidentAnalysisState) -> dict:
        prompt = _REPHRASE_PROMPT.format(narrative=state["narrative"])
        text = await complete_within(provider, [{"role": "user", "content": prompt}], timeout)
        if text is None:
            return {}
        return {"narrative": text, "ai_narrated": True}

    return rephrase_narrative
