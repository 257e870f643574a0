"""Canned assistant texts: welcome messages, callback guides, system prompt."""

from __future__ import annotations

from typing import Optional

from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.enums import RiskLevel
from stake_guard.domain.recommendation import TopValidator
from stake_guard.domain.session import ConversationSession

UNKNOWN_CALLBACK_MESSAGE = (
    "I didn't understand that request. Try asking about unstaking, redelegating, "
    "or viewing incidents for a specific validator."
)

_SYSTEM_PROMPT = """You are an expert staking assistant specializing in Sei blockchain staking security and validator analysis.

RISK SCORING:
- Scores run from 10 to 100. Green (80+) = Safe, Yellow (60-79) = Caution, Red (<60) = High Risk.
- Jailing costs 40 points, leaving the active set 25, commission above 10% costs 10
  and above 15% a further 20, a maximum commission above 20% costs 5.

SEI NETWORK FUNDAMENTALS:
- Cosmos-based chain with EVM compatibility
- Staking token: SEI
- Unbonding period: 21 days (tokens locked during unstaking)
- Redelegation is instant
- Slashing: 0.01% for downtime, 5% for double-signing

{context}

RULES:
- Answer concisely in markdown.
- Use ONLY the validator data above; say "unknown" when a value is missing.
- Recommend unstaking or redelegating only when the data supports it."""


def short_wallet(wallet_address: str) -> str:
    if len(wallet_address) <= 10:
        return wallet_address
    return f"{wallet_address[:6]}...{wallet_address[-4:]}"


def chat_welcome(session: ConversationSession) -> str:
    if session.wallet_address:
        wallet = (
            f"I see you have wallet {short_wallet(session.wallet_address)} connected. "
            "I can analyze your current delegations and provide personalized advice."
        )
    else:
        wallet = "Connect your wallet to get personalized staking recommendations."
    return (
        "Welcome to the staking assistant! I'm here to help you with staking decisions "
        f"on Sei network.\n\n{wallet}\n\n"
        "You can ask me:\n"
        '• "Should I unstake from [validator]?"\n'
        '• "Who are the safest validators?"\n'
        '• "What\'s my staking risk?"\n'
        '• "Show me incident reports"'
    )


def conversation_welcome(session: ConversationSession) -> str:
    name = session.validator_name or "this validator"
    ctx = session.validator_context
    if ctx is None:
        status = "I couldn't load a risk assessment yet, but I can still explain staking concepts."
    else:
        status = (
            f"{name} currently scores **{ctx.current_score}/100** "
            f"({ctx.risk_level.value.upper()} risk) with {len(ctx.incidents)} recorded incident(s)."
        )
    return (
        f"Hi! Let's talk about **{name}**.\n\n{status}\n\n"
        "Ask me what happened, whether you should unstake or redelegate, "
        "or what any staking term means."
    )


def validator_context_block(
    name: Optional[str],
    address: Optional[str],
    assessment: Optional[RiskAssessment],
    wallet_address: Optional[str] = None,
) -> str:
    lines = ["CURRENT CONTEXT:"]
    if wallet_address:
        lines.append(f"- Wallet: {short_wallet(wallet_address)}")
    if name or address:
        lines.append(f"- Validator: {name or 'unknown'} ({address or 'unknown'})")
    if assessment is not None:
        perf = assessment.performance
        lines.extend([
            f"- Score: {assessment.current_score}/100",
            f"- Risk level: {assessment.risk_level.value}",
            f"- Status: {assessment.status.value}",
            f"- Jailed: {'yes' if assessment.jailed else 'no'}",
            f"- Uptime: {perf.uptime}%",
            f"- Missed blocks: {perf.missed_blocks}",
            f"- Commission: {perf.commission_rate}%",
            f"- Voting power: {perf.voting_power}",
        ])
        for incident in assessment.incidents:
            lines.append(
                f"- Incident [{incident.severity.value}] {incident.title} "
                f"({incident.score_delta:+d}): {incident.description}"
            )
    if len(lines) == 1:
        lines.append("- No validator selected")
    return "\n".join(lines)


def system_prompt(context_block: str) -> str:
    return _SYSTEM_PROMPT.format(context=context_block)


# ── Callback guides ─────────────────────────────────────────────────────────

def unstake_guide(label: str) -> str:
    return (
        f"To unstake from {label}, follow these steps:\n\n"
        "1. Open your wallet\n"
        "2. Navigate to the Sei staking interface\n"
        f"3. Find your delegation to {label}\n"
        '4. Click "Undelegate" and confirm the transaction\n\n'
        "⚠️ Important: Unstaking has a 21-day unbonding period. "
        "Your SEI will be locked during this time.\n\n"
        "Estimated gas cost: ~0.01 SEI\n"
        "Unbonding period: 21 days"
    )


def redelegate_guide(label: str, top: list[TopValidator]) -> str:
    suggestions = "\n".join(
        f"{i}. {v.name} - Score: {v.score} ({v.uptime:g}% uptime)"
        for i, v in enumerate(top[:3], start=1)
    ) or "No ranked validators are available right now."
    return (
        f"Moving your stake from {label} to a safer validator:\n\n"
        f"🏆 Top Recommended Validators:\n{suggestions}\n\n"
        "📝 How to redelegate:\n"
        "1. Open your wallet's staking section\n"
        f"2. Find your {label} delegation\n"
        '3. Click "Redelegate" (no unbonding period!)\n'
        "4. Choose one of the recommended validators above\n"
        "5. Confirm the transaction\n\n"
        "✨ Pro tip: Redelegation is instant - no waiting period required!"
    )


_INCIDENT_VERDICT: dict[RiskLevel, str] = {
    RiskLevel.RED: "HIGH RISK - Unstake or redelegate immediately. Funds delegated here are at risk.",
    RiskLevel.YELLOW: "MODERATE RISK - Monitor closely and consider reducing your stake.",
    RiskLevel.GREEN: "LOW RISK - Validator appears stable. Continue regular monitoring.",
}


def incident_report(label: str, assessment: Optional[RiskAssessment]) -> str:
    if assessment is None:
        return (
            f"📊 {label} Incident Report:\n\n"
            f"{label} incident data is being analyzed.\n\n"
            "📈 Recent Events:\n• No major incidents recorded in the past 30 days\n\n"
            "🔍 Analysis:\nValidator appears to be operating normally.\n\n"
            "💡 Recommendation: Continue monitoring validator performance."
        )

    events = "\n".join(
        f"• {i.timestamp.date().isoformat()}: {i.title} ({i.score_delta:+d})"
        for i in assessment.incidents
    ) or "• No major incidents recorded"
    perf = assessment.performance
    analysis = (
        f"Score {assessment.current_score}/100 ({assessment.risk_level.value.upper()}). "
        f"Status: {assessment.status.value}{', JAILED' if assessment.jailed else ''}. "
        f"Uptime {perf.uptime:g}%, {perf.missed_blocks} missed blocks, "
        f"commission {perf.commission_rate:g}%."
    )
    if assessment.degraded:
        analysis += " Live chain data was unavailable, so this is an estimate."
    return (
        f"📊 {label} Incident Report:\n\n"
        f"{len(assessment.incidents)} incident(s) affect {assessment.validator_name}'s score.\n\n"
        f"📈 Recent Events:\n{events}\n\n"
        f"🔍 Analysis:\n{analysis}\n\n"
        f"💡 Recommendation: {_INCIDENT_VERDICT[assessment.risk_level]}"
    )


def general_advice(high_risk_count: int) -> str:
    if high_risk_count == 0:
        return (
            "Your staking portfolio looks healthy! All validators have acceptable scores. "
            "Keep monitoring for any changes in validator performance."
        )
    return (
        f"I found {high_risk_count} high-risk delegation(s) in your portfolio. "
        "Consider unstaking or redelegating to safer validators to protect your assets. "
        "Would you like specific recommendations?"
    )
