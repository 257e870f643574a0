"""RecommendationComposer — assessment → structured advice.

Design principles:
    1. The rule-based path is always available and fully deterministic.
    2. An optional completion provider may supply richer wording.  It is
       bounded by a timeout and can never make ``compose`` fail.
    3. When the provider was asked and did not deliver, the result is
       marked degraded: confidence drops and a connectivity concern is
       prepended so the UI can signal reduced quality.

Portfolio aggregate:
    total_at_risk = Σ staked amounts of red recommendations
    summary       = by red count: 0 → healthy, 1 → names it, >1 → count + total
    insights      = critical (>1 red) | high (1 red) | moderate (yellow > green) | low
    diversification = max(20, 100 − 30·red − 10·yellow)
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Optional

from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.callback import CallbackAction
from stake_guard.domain.enums import CallbackVerb, PortfolioRiskLevel, RiskLevel
from stake_guard.domain.recommendation import (
    CallbackIds,
    PortfolioAnalysis,
    PortfolioInsights,
    PortfolioSummary,
    Recommendation,
)
from stake_guard.foundation.amounts import format_amount, parse_amount
from stake_guard.providers.base import CompletionProvider
from stake_guard.providers.race import complete_within

logger = logging.getLogger(__name__)

RULE_CONFIDENCE = 85
DEGRADED_CONFIDENCE = 70
CONNECTIVITY_CONCERN = "Analysis limited by connectivity to the AI service"
ESTIMATED_DATA_CONCERN = "Live validator data unavailable; score is an estimate"

RECOMMENDATION_TEMPLATES: dict[RiskLevel, str] = {
    RiskLevel.GREEN: "🟢 Healthy — no action needed.",
    RiskLevel.YELLOW: "🟡 Moderate risk. Monitor or consider reducing stake.",
    RiskLevel.RED: "🔴 High risk! Unstake immediately and review incidents.",
}

SUGGESTED_ACTIONS: dict[RiskLevel, list[str]] = {
    RiskLevel.RED: [
        "Consider unstaking immediately",
        "Research alternative validators",
        "Monitor for improvements",
    ],
    RiskLevel.YELLOW: [
        "Monitor performance weekly",
        "Consider reducing stake size",
        "Diversify to other validators",
    ],
    RiskLevel.GREEN: [
        "Continue current delegation",
        "Monitor monthly",
        "Consider increasing stake if performance remains strong",
    ],
}

_SYSTEM_PROMPT = (
    "You are an expert Sei blockchain staking advisor. "
    "Provide precise, actionable validator analysis in JSON format."
)

_COMPOSE_PROMPT = """Analyze this validator delegation and provide a specific, actionable recommendation.

Validator: {name} ({address})
- Staked: {staked}
- Security score: {score}/100 ({risk_level})
- Uptime: {uptime}%
- Missed blocks: {missed_blocks}
- Commission: {commission}%
- Status: {status}
- Incidents:
{incidents}

Consider: jailed validators require immediate action, commission above 10% reduces
rewards, missed blocks indicate technical issues.

Respond with ONLY a JSON object with keys "recommendation" (plain English),
"confidence_score" (0-100), "key_concerns" (list of strings) and
"suggested_actions" (list of strings)."""


def callback_ids(validator_name: str) -> CallbackIds:
    return CallbackIds(
        unstake=CallbackAction.for_validator(CallbackVerb.UNSTAKE, validator_name).callback_id,
        redelegate=CallbackAction.for_validator(CallbackVerb.REDELEGATE, validator_name).callback_id,
        incidents=CallbackAction.for_validator(CallbackVerb.INCIDENTS, validator_name).callback_id,
    )


def default_concerns(assessment: RiskAssessment) -> list[str]:
    perf = assessment.performance
    concerns: list[str] = []
    if assessment.jailed:
        concerns.append("Validator is currently jailed")
    if assessment.risk_level == RiskLevel.RED:
        concerns.append("Low security score")
    if perf.uptime < 95.0:
        concerns.append("Below optimal uptime")
    if perf.commission_rate > 10.0:
        concerns.append("High commission rate")
    if perf.missed_blocks > 10:
        concerns.append("Recent missed blocks")
    return concerns or ["Regular monitoring recommended"]


def default_actions(assessment: RiskAssessment) -> list[str]:
    level = RiskLevel.RED if assessment.jailed else assessment.risk_level
    return list(SUGGESTED_ACTIONS[level])


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
        text = "\n".join(lines).strip()
    return text


def parse_composition(text: str) -> dict[str, Any]:
    """Parse the provider's JSON answer, keeping only well-typed fields.

    Raises:
        ValueError: If the text is not a JSON object.
    """
    raw = json.loads(_strip_fences(text))
    if not isinstance(raw, dict):
        raise ValueError("Expected a JSON object")

    parsed: dict[str, Any] = {}
    if isinstance(raw.get("recommendation"), str) and raw["recommendation"].strip():
        parsed["recommendation"] = raw["recommendation"].strip()
    if isinstance(raw.get("confidence_score"), (int, float)):
        parsed["confidence_score"] = max(0, min(int(raw["confidence_score"]), 100))
    for key in ("key_concerns", "suggested_actions"):
        value = raw.get(key)
        if isinstance(value, list):
            items = [str(v).strip() for v in value if str(v).strip()]
            if items:
                parsed[key] = items
    return parsed


class RecommendationComposer:
    """Builds Recommendations and portfolio aggregates from assessments."""

    def __init__(
        self,
        provider: Optional[CompletionProvider] = None,
        timeout: float = 5.0,
        token_symbol: str = "SEI",
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._symbol = token_symbol

    # ── Single validator ─────────────────────────────────────────────────

    async def compose(self, assessment: RiskAssessment, staked_amount: str) -> Recommendation:
        """Compose a recommendation; never raises for provider failures."""
        if self._provider is None:
            return self.compose_rule_based(assessment, staked_amount)

        text = await complete_within(
            self._provider, self._composition_messages(assessment, staked_amount), self._timeout
        )
        if text is None:
            return self.compose_rule_based(assessment, staked_amount, connectivity_failed=True)

        try:
            parsed = parse_composition(text)
        except (json.JSONDecodeError, ValueError) as exc:
            logger.warning(
                "Unparseable composition for %s: %s — using rule-based template",
                assessment.validator_name, exc,
            )
            return self.compose_rule_based(assessment, staked_amount, connectivity_failed=True)

        base = self.compose_rule_based(assessment, staked_amount)
        return base.model_copy(update={
            "recommendation": parsed.get("recommendation", base.recommendation),
            "confidence_score": parsed.get("confidence_score", base.confidence_score),
            "key_concerns": parsed.get("key_concerns", base.key_concerns),
            "suggested_actions": parsed.get("suggested_actions", base.suggested_actions),
            "ai_generated": True,
        })

    def compose_rule_based(
        self,
        assessment: RiskAssessment,
        staked_amount: str,
        connectivity_failed: bool = False,
    ) -> Recommendation:
        concerns = default_concerns(assessment)
        if assessment.degraded:
            concerns.insert(0, ESTIMATED_DATA_CONCERN)
        if connectivity_failed:
            concerns.insert(0, CONNECTIVITY_CONCERN)

        return Recommendation(
            validator_address=assessment.validator_address,
            validator_name=assessment.validator_name,
            staked_amount=staked_amount,
            score=assessment.current_score,
            risk_level=assessment.risk_level,
            recommendation=RECOMMENDATION_TEMPLATES[assessment.risk_level],
            confidence_score=DEGRADED_CONFIDENCE if connectivity_failed else RULE_CONFIDENCE,
            key_concerns=concerns,
            suggested_actions=default_actions(assessment),
            callbacks=callback_ids(assessment.validator_name),
            ai_generated=False,
            degraded=connectivity_failed or assessment.degraded,
        )

    # ── Portfolio ────────────────────────────────────────────────────────

    def total_at_risk(self, recommendations: list[Recommendation]) -> str:
        total = sum(
            (parse_amount(r.staked_amount) for r in recommendations if r.risk_level == RiskLevel.RED),
            Decimal(0),
        )
        return format_amount(total, self._symbol)

    def summary_text(self, recommendations: list[Recommendation]) -> str:
        red = [r for r in recommendations if r.risk_level == RiskLevel.RED]
        if not red:
            return (
                "Your staking portfolio shows good risk management with no critical "
                "issues requiring immediate attention."
            )
        if len(red) == 1:
            return (
                f"Portfolio requires attention: {red[0].validator_name} is showing "
                f"high risk metrics ({red[0].staked_amount} at risk)."
            )
        return (
            f"Portfolio requires attention: {len(red)} validators showing high risk "
            f"metrics, {self.total_at_risk(recommendations)} at risk."
        )

    @staticmethod
    def insights(recommendations: list[Recommendation], degraded: bool = False) -> PortfolioInsights:
        red = sum(1 for r in recommendations if r.risk_level == RiskLevel.RED)
        yellow = sum(1 for r in recommendations if r.risk_level == RiskLevel.YELLOW)
        green = sum(1 for r in recommendations if r.risk_level == RiskLevel.GREEN)

        if red > 1:
            level = PortfolioRiskLevel.CRITICAL
        elif red == 1:
            level = PortfolioRiskLevel.HIGH
        elif yellow > green:
            level = PortfolioRiskLevel.MODERATE
        else:
            level = PortfolioRiskLevel.LOW

        if red > 0:
            actions = [
                "Review high-risk validators immediately",
                "Consider redistributing stakes",
                "Monitor validator status daily",
            ]
        else:
            actions = [
                "Maintain current strategy",
                "Regular monthly reviews",
                "Consider expanding to additional validators",
            ]

        context = (
            "Analysis completed using rule-based assessment due to AI service limitations."
            if degraded
            else "Sei network is experiencing normal validator activity."
        )
        return PortfolioInsights(
            portfolio_risk_level=level,
            diversification_score=max(20, 100 - red * 30 - yellow * 10),
            recommended_actions=actions,
            market_context=context,
        )

    def summarize(self, user_address: str, recommendations: list[Recommendation]) -> PortfolioAnalysis:
        degraded = any(r.degraded for r in recommendations)
        return PortfolioAnalysis(
            user_address=user_address,
            delegations=recommendations,
            summary=self.summary_text(recommendations),
            total_at_risk=self.total_at_risk(recommendations),
            insights=self.insights(recommendations, degraded=degraded),
            degraded=degraded,
        )

    @staticmethod
    def condense(analysis: PortfolioAnalysis) -> PortfolioSummary:
        levels = [r.risk_level for r in analysis.delegations]
        return PortfolioSummary(
            user_address=analysis.user_address,
            summary=analysis.summary,
            total_at_risk=analysis.total_at_risk,
            red_count=levels.count(RiskLevel.RED),
            yellow_count=levels.count(RiskLevel.YELLOW),
            green_count=levels.count(RiskLevel.GREEN),
            insights=analysis.insights,
            degraded=analysis.degraded,
        )

    # ── Internals ────────────────────────────────────────────────────────

    def _composition_messages(self, assessment: RiskAssessment, staked_amount: str) -> list[dict[str, str]]:
        perf = assessment.performance
        incidents = "\n".join(
            f"  • [{i.severity.value}] {i.title}: {i.description}" for i in assessment.incidents
        ) or "  • none"
        prompt = _COMPOSE_PROMPT.format(
            name=assessment.validator_name,
            address=assessment.validator_address,
            staked=staked_amount,
            score=assessment.current_score,
            risk_level=assessment.risk_level.value,
            uptime=perf.uptime,
            missed_blocks=perf.missed_blocks,
            commission=perf.commission_rate,
            status="JAILED" if assessment.jailed else assessment.status.value,
            incidents=incidents,
        )
        return [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
