"""Deterministic incident narratives.

The narrative restates a RiskAssessment as markdown: immediate concerns,
the performance picture, every incident, and numbered next steps chosen
by risk level.  It never adds facts that are not in the assessment, so an
optional LLM rephrasing step downstream has nothing to invent from.
"""

from __future__ import annotations

from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.enums import RiskLevel, Severity

HEADLINES: dict[RiskLevel, str] = {
    RiskLevel.RED: "🚨 IMMEDIATE ACTION REQUIRED - Unstake funds immediately",
    RiskLevel.YELLOW: "⚠️ MONITOR CLOSELY - Consider partial redelegation",
    RiskLevel.GREEN: "✅ VALIDATOR HEALTHY - Continue monitoring",
}

_ACTIONS: dict[RiskLevel, list[str]] = {
    RiskLevel.RED: [
        "**UNSTAKE IMMEDIATELY** - Do not wait for further degradation",
        "Redelegate to a top-performing validator with a green score (80+)",
        "Monitor the validator for recovery before considering a return",
        "Consider diversifying stake across multiple high-quality validators",
    ],
    RiskLevel.YELLOW: [
        "**Monitor daily** for score changes and new incidents",
        "Consider reducing stake by 50% and redelegating to safer validators",
        "Set up alerts for further score degradation",
        "Review the validator's communication and governance participation",
    ],
    RiskLevel.GREEN: [
        "**Continue current delegation** - No immediate action needed",
        "Monitor monthly for any performance changes",
        "Keep updated with validator announcements",
        "Consider this validator for additional delegations",
    ],
}

_TITLES: dict[RiskLevel, str] = {
    RiskLevel.RED: "Critical Risk Analysis",
    RiskLevel.YELLOW: "Moderate Risk Analysis",
    RiskLevel.GREEN: "Healthy Validator Analysis",
}


def headline_for(assessment: RiskAssessment) -> str:
    return HEADLINES[assessment.risk_level]


def build_narrative(assessment: RiskAssessment) -> str:
    level = assessment.risk_level
    perf = assessment.performance
    lines = [f"**{_TITLES[level]} for {assessment.validator_name}**", ""]

    # ── Concerns ─────────────────────────────────────────────────────────
    if level == RiskLevel.RED:
        focus = assessment.incidents_with(Severity.CRITICAL)
        fallback = "Multiple high-severity performance issues detected"
    elif level == RiskLevel.YELLOW:
        focus = assessment.incidents_with(Severity.HIGH, Severity.CRITICAL)
        fallback = "Performance inconsistencies detected"
    else:
        focus = []
        fallback = "No critical issues detected in current analysis"
    lines.append("**Current Concerns:**")
    lines.extend(f"• {i.description}" for i in focus)
    if not focus:
        lines.append(f"• {fallback}")
    lines.append("")

    # ── Performance ──────────────────────────────────────────────────────
    lines.append("**Performance Assessment:**")
    lines.append(f"• Score: {assessment.current_score}/100 ({level.value.upper()})")
    lines.append(f"• Status: {assessment.status.value}")
    lines.append(f"• Jailed: {'Yes' if assessment.jailed else 'No'}")
    lines.append(f"• Uptime: {perf.uptime:g}%")
    lines.append(f"• Missed Blocks: {perf.missed_blocks}")
    lines.append(f"• Commission: {perf.commission_rate:g}%")
    lines.append(f"• Voting Power: {perf.voting_power}")
    if assessment.jailed:
        lines.append("• Funds delegated to this validator are NOT earning rewards")
    lines.append("")

    # ── Incidents ────────────────────────────────────────────────────────
    lines.append(f"**Risk Factors ({len(assessment.incidents)}):**")
    if assessment.incidents:
        lines.extend(
            f"• {i.type.value}: {i.description} ({i.score_delta:+d})"
            for i in assessment.incidents
        )
    else:
        lines.append("• No significant issues identified")
    lines.append("")

    # ── Actions ──────────────────────────────────────────────────────────
    lines.append("**Recommended Actions:**")
    lines.extend(f"{n}. {action}" for n, action in enumerate(_ACTIONS[level], start=1))

    if assessment.degraded:
        lines.append("")
        lines.append(
            "_Live chain data was unavailable; this analysis uses a deterministic estimate._"
        )
    return "\n".join(lines)
