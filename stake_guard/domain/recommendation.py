"""Recommendation and portfolio models handed to the UI."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from stake_guard.domain.enums import PortfolioRiskLevel, RiskLevel
from stake_guard.foundation.clock import utc_now


class CallbackIds(BaseModel):
    """Opaque ``<verb>_<slug>`` tokens for the follow-up buttons."""

    unstake: str
    redelegate: str
    incidents: str

    model_config = {"frozen": True}


class Recommendation(BaseModel):
    validator_address: str
    validator_name: str
    staked_amount: str = Field(..., description="Display string, e.g. '1,000 SEI'")
    score: int
    risk_level: RiskLevel
    recommendation: str
    confidence_score: int = Field(..., ge=0, le=100)
    key_concerns: list[str] = Field(default_factory=list)
    suggested_actions: list[str] = Field(default_factory=list)
    callbacks: CallbackIds
    ai_generated: bool = False
    degraded: bool = False

    model_config = {"frozen": True}


class PortfolioInsights(BaseModel):
    portfolio_risk_level: PortfolioRiskLevel
    diversification_score: int = Field(..., ge=0, le=100)
    recommended_actions: list[str] = Field(default_factory=list)
    market_context: str = ""

    model_config = {"frozen": True}


class PortfolioAnalysis(BaseModel):
    user_address: str
    delegations: list[Recommendation] = Field(default_factory=list)
    summary: str
    total_at_risk: str
    insights: PortfolioInsights
    degraded: bool = False
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class PortfolioSummary(BaseModel):
    user_address: str
    summary: str
    total_at_risk: str
    red_count: int
    yellow_count: int
    green_count: int
    insights: PortfolioInsights
    degraded: bool = False

    model_config = {"frozen": True}


class TopValidator(BaseModel):
    """A redelegation candidate shown in advice text."""

    name: str
    score: int = Field(..., ge=0, le=100)
    uptime: float = Field(..., ge=0.0, le=100.0)
    address: str = ""

    model_config = {"frozen": True}
