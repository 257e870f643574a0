"""Incidents and risk assessments produced by the scoring core.

These are pure observations: an Incident records what happened and how
much it moved the score, a RiskAssessment records the resulting score and
its classification.  Neither carries advice; that belongs to the
recommendation layer.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from stake_guard.domain.enums import BondStatus, IncidentType, RiskLevel, Severity
from stake_guard.foundation.clock import utc_now


class Incident(BaseModel):
    """A discrete event contributing a signed delta to a validator's score."""

    type: IncidentType
    title: str
    description: str
    severity: Severity
    timestamp: datetime
    score_delta: int

    model_config = {"frozen": True}


class PerformanceMetrics(BaseModel):
    uptime: float = Field(..., ge=0.0, le=100.0)
    missed_blocks: int = Field(..., ge=0)
    commission_rate: float = Field(..., description="Commission as a percentage")
    voting_power: str = Field(..., description="Display string, e.g. '1,234 SEI'")

    model_config = {"frozen": True}


class RiskAssessment(BaseModel):
    """Immutable risk observation of one validator at a point in time."""

    validator_address: str
    validator_name: str
    current_score: int = Field(..., ge=10, le=100)
    risk_level: RiskLevel
    incidents: list[Incident] = Field(default_factory=list)
    performance: PerformanceMetrics
    status: BondStatus
    jailed: bool
    degraded: bool = Field(
        False, description="True when built from fallback data instead of live telemetry"
    )
    assessed_at: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}

    @property
    def total_delta(self) -> int:
        return sum(i.score_delta for i in self.incidents)

    def incidents_with(self, *severities: Severity) -> list[Incident]:
        return [i for i in self.incidents if i.severity in severities]
