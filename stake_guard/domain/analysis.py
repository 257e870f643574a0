"""Incident analysis — the assessment plus its narrative, as returned to the UI."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from stake_guard.domain.assessment import RiskAssessment
from stake_guard.foundation.clock import utc_now
from stake_guard.foundation.identifiers import new_id


class IncidentAnalysis(BaseModel):
    analysis_id: str = Field(default_factory=lambda: f"incident_{new_id()}")
    assessment: RiskAssessment
    headline: str = Field(..., description="One-line recommendation")
    narrative: str = Field(..., description="Markdown narrative")
    ai_narrated: bool = False
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}
