"""IncidentAnalysisState — the sole state object the analysis graph nodes share.

Every node receives the full state and returns a partial update.  Models
are carried as ``model_dump()`` dicts and re-validated where needed.
"""

from __future__ import annotations

from typing import Any, Optional, TypedDict


class IncidentAnalysisState(TypedDict, total=False):
    """LangGraph state for one validator incident analysis.

    Fields:
        validator_address: Operator address being analysed.
        validator_name: Display-name hint used by the fallback assessment.
        telemetry: Serialised ValidatorTelemetry, or None if the fetch failed.
        fetch_error: Reason the telemetry fetch failed, if it did.
        assessment: Serialised RiskAssessment.
        headline: One-line recommendation.
        narrative: Markdown narrative (deterministic or rephrased).
        ai_narrated: True when the narrative was rephrased by a provider.
    """

    validator_address: str
    validator_name: Optional[str]
    telemetry: Optional[dict[str, Any]]
    fetch_error: Optional[str]
    assessment: dict[str, Any]
    headline: str
    narrative: str
    ai_narrated: bool
