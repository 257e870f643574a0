"""Deterministic topic routing for the assistant's fallback path.

The routing table is an ordered list of ``TopicRoute(name, predicate,
render)`` entries.  The FIRST route whose predicate matches the lowercased
user text answers; when none matches, the help menu is rendered.

Order matters: a message such as "should I unstake from a jailed
validator?" is answered by ``jailed``, and ``unstake`` is checked before
the generic ``incident`` / "what happened" route.

Renderers never perform I/O: anything they need (top validators, the
wallet's last portfolio analysis) is resolved into the TopicContext
beforehand.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.enums import BondStatus, RiskLevel
from stake_guard.domain.recommendation import PortfolioAnalysis, TopValidator

MENU_TOPIC = "menu"


@dataclass(frozen=True)
class TopicContext:
    """Everything a renderer may reference; all fields are optional."""

    validator_name: Optional[str] = None
    validator_address: Optional[str] = None
    assessment: Optional[RiskAssessment] = None
    wallet_address: Optional[str] = None
    top_validators: list[TopValidator] = field(default_factory=list)
    portfolio: Optional[PortfolioAnalysis] = None

    @property
    def subject(self) -> str:
        return self.validator_name or "this validator"

    @property
    def jailed(self) -> bool:
        return bool(self.assessment and self.assessment.jailed)

    @property
    def risk_level(self) -> Optional[RiskLevel]:
        return self.assessment.risk_level if self.assessment else None

    @property
    def score_text(self) -> str:
        return str(self.assessment.current_score) if self.assessment else "Unknown"

    @property
    def risk_text(self) -> str:
        return self.assessment.risk_level.value.upper() if self.assessment else "Unknown"

    @property
    def status_text(self) -> str:
        return self.assessment.status.value.upper() if self.assessment else "Unknown"


@dataclass(frozen=True)
class TopicRoute:
    name: str
    predicate: Callable[[str], bool]
    render: Callable[[TopicContext], str]


def contains_any(*needles: str) -> Callable[[str], bool]:
    return lambda text: any(n in text for n in needles)


def whole_words(*words: str) -> Callable[[str], bool]:
    pattern = re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b")
    return lambda text: pattern.search(text) is not None


def _bullets(lines: list[str]) -> str:
    return "\n".join(f"• {line}" for line in lines)


def _alternatives(ctx: TopicContext, limit: int = 3) -> str:
    names = [v.name for v in ctx.top_validators[:limit]]
    return ", ".join(names) if names else "validators with a green score (80+)"


# ── Renderers ───────────────────────────────────────────────────────────────

def render_jailed(ctx: TopicContext) -> str:
    if ctx.jailed:
        impact = _bullets([
            "This validator is currently JAILED",
            "Your staked tokens are NOT earning rewards",
            "The validator cannot participate in consensus",
        ])
        advice = _bullets([
            "UNSTAKE immediately - jailed validators don't earn rewards",
            "Redelegate to an active, healthy validator",
            "Monitor for unjailing announcements",
        ])
    else:
        impact = _bullets([
            "This validator is currently active",
            "Your tokens are earning rewards normally",
        ])
        advice = _bullets([
            "Continue monitoring validator performance",
            "Watch for any jailing events in the future",
        ])
    return f"""**Validator Jailing on Sei Network**

When a validator is "jailed," it has been temporarily removed from the active validator set due to poor performance or misbehavior.

**What causes jailing:**
{_bullets(['Missing too many blocks (downtime)', 'Double-signing (security violation)', 'Network protocol violations'])}

**Impact on {ctx.subject}:**
{impact}

**What you should do:**
{advice}

**Unjailing process:**
{_bullets(['Validator must fix the underlying issue', 'Wait for the minimum jail time (varies by offense)', 'Submit an unjail transaction', 'Resume normal operations if successful'])}

Would you like to know more about any specific aspect of validator jailing?"""


def render_inactive(ctx: TopicContext) -> str:
    bonded = ctx.assessment is not None and ctx.assessment.status == BondStatus.BONDED
    if bonded:
        state = _bullets(["Status: ACTIVE (Bonded)", "Currently earning rewards", "Participating in network consensus"])
        stake = _bullets(["Your tokens are earning staking rewards", "Validator is performing network duties"])
    else:
        state = _bullets([f"Status: INACTIVE ({ctx.status_text})", "NOT earning rewards", "Not participating in consensus"])
        stake = _bullets(["Your tokens are NOT earning rewards", "Consider redelegating to an active validator"])
    return f"""**Validator Status: Inactive/Unbonded**

An "inactive" or "unbonded" validator is not participating in consensus and block production.

**Validator statuses on Sei:**
{_bullets(['**BONDED**: Active, earning rewards, participating in consensus', '**UNBONDING**: Leaving the active set, 21-day unbonding period', '**UNBONDED**: Inactive, not earning rewards'])}

**For {ctx.subject}:**
{state}

**Common reasons for inactive status:**
{_bullets(['Insufficient delegation (below the active-set threshold)', 'Voluntary exit from the active set', 'Technical issues or maintenance', 'Slashing penalties'])}

**What this means for your stake:**
{stake}

Would you like to learn about redelegation or other validator topics?"""


def render_commission(ctx: TopicContext) -> str:
    if ctx.assessment is None:
        rate_line = "Current Rate: Unknown"
        verdict = "Compare commission rates across validators before delegating."
    else:
        rate = ctx.assessment.performance.commission_rate
        rate_line = f"Current Rate: {rate:g}%"
        if rate <= 5:
            verdict = "✅ This is a competitive, delegator-friendly rate"
        elif rate <= 10:
            verdict = "⚠️ Moderate rate, acceptable for quality service"
        else:
            verdict = "🚨 High commission rate - compare with alternatives"
    return f"""**Validator Commission Rates**

Commission is the percentage of rewards that validators keep for operating their infrastructure.

**{ctx.subject} commission:**
• {rate_line}

**How commission works:**
{_bullets(['You earn: (Total Rewards) × (100% - Commission Rate)', 'Validator keeps: (Total Rewards) × Commission Rate', 'Example: 10% commission = you get 90% of rewards'])}

**Typical ranges:**
{_bullets(['Low: 0-5% (competitive, delegator-friendly)', 'Medium: 5-10% (balanced)', 'High: 10-20% (less competitive)', 'Very High: 20%+ (avoid unless exceptional service)'])}

**Analysis:**
{verdict}

Lower commission means more rewards for you, but weigh validator reliability too."""


def render_slashing(ctx: TopicContext) -> str:
    if ctx.jailed:
        status = _bullets(["This validator was recently jailed", "Check whether slashing occurred", "Your stake may have been reduced"])
    else:
        status = _bullets(["No recent slashing events detected", "Validator appears to be operating safely"])
    return f"""**Slashing on Sei Network**

Slashing is a penalty that reduces staked tokens when a validator misbehaves.

**Types of slashing:**
1. **Downtime slashing** (0.01%): missing blocks for extended periods
2. **Double-sign slashing** (5%): signing conflicting blocks, plus permanent jailing

**For {ctx.subject}:**
{status}

**How slashing affects you:**
{_bullets(['Your delegated tokens can be reduced', 'Slashing applies to ALL delegators', 'Slashed tokens cannot be recovered', 'Jailing prevents further rewards'])}

**Protection strategies:**
{_bullets(['Diversify across multiple validators', 'Monitor validator performance regularly', 'Avoid validators with poor track records'])}

Would you like to know more about protecting your stake?"""


def render_unstake(ctx: TopicContext) -> str:
    if ctx.jailed:
        advice = "🚨 **RECOMMENDED ACTION: UNSTAKE IMMEDIATELY**\n" + _bullets([
            "Validator is jailed - not earning rewards",
            "Your tokens are at risk",
            "The 21-day unbonding period starts when you submit",
        ])
    elif ctx.risk_level == RiskLevel.RED:
        advice = "⚠️ **CONSIDER UNSTAKING**\n" + _bullets([
            "High risk validator",
            "Consider partial unstaking",
            "Monitor closely if keeping stake",
        ])
    else:
        advice = _bullets([
            "Validator appears healthy",
            "Unstaking is not urgently needed",
            "Your choice based on strategy",
        ])
    return f"""**Unstaking (Undelegating) on Sei**

Unstaking removes your tokens from a validator and returns them to your wallet.

**Process:**
1. **Submit an undelegate transaction**: choose the amount and pay the fee
2. **Unbonding period: 21 days**: tokens are locked and earn no rewards
3. **Tokens returned**: available in your wallet after 21 days

**For {ctx.subject}:**
{advice}

**Unstaking vs redelegating:**
{_bullets(['**Unstaking**: 21-day wait, tokens return to wallet', '**Redelegating**: instant move to another validator'])}

Would you like help choosing an alternative validator?"""


def render_redelegate(ctx: TopicContext) -> str:
    if ctx.jailed:
        advice = "🚨 **URGENT: REDELEGATE IMMEDIATELY**\n" + _bullets([
            "This validator is jailed",
            "Move to an active validator now",
            f"Recommended alternatives: {_alternatives(ctx)}",
        ])
    elif ctx.risk_level == RiskLevel.RED:
        advice = "⚠️ **CONSIDER REDELEGATING**\n" + _bullets([
            "High risk validator",
            "Move to a safer alternative",
        ])
    else:
        advice = _bullets([
            "Current validator appears stable",
            "Redelegation is not urgently needed",
            "Could diversify for better risk management",
        ])
    return f"""**Redelegation on Sei Network**

Redelegation moves your stake from one validator to another without waiting.

**Benefits:**
{_bullets(['**Instant**: no unbonding period', '**No downtime**: continue earning rewards', '**Risk mitigation**: move away from problematic validators'])}

**For {ctx.subject}:**
{advice}

**Limits:**
{_bullets(['You can redelegate from the same validator once per 21 days', 'Choose the destination carefully'])}

**Recommended targets:** {_alternatives(ctx)}

Would you like help selecting a specific validator?"""


def render_safest(ctx: TopicContext) -> str:
    if not ctx.top_validators:
        return (
            "I don't have a current validator ranking available. Look for validators "
            "with a green score (80+), commission of 5% or less and 99%+ uptime."
        )
    lines = "\n".join(
        f"{i}. **{v.name}** - Score: {v.score} ({v.uptime:g}% uptime)"
        for i, v in enumerate(ctx.top_validators[:5], start=1)
    )
    return (
        "Here are the top-performing validators by security score:\n\n"
        f"{lines}\n\n"
        "These validators have consistently high scores and excellent uptime. "
        "Consider redelegating to any of these for optimal security."
    )


def render_score(ctx: TopicContext) -> str:
    if ctx.assessment and ctx.assessment.incidents:
        changes = _bullets([
            f"{i.title}: {i.score_delta:+d} points" for i in ctx.assessment.incidents
        ])
    else:
        changes = "• No recent significant events detected"
    uptime = f"{ctx.assessment.performance.uptime:g}%" if ctx.assessment else "Unknown"
    current = _bullets([
        f"**Current Score**: {ctx.score_text}",
        f"**Risk Level**: {ctx.risk_text}",
        f"**Uptime**: {uptime}",
    ])
    return f"""**Security Score**

Every validator gets a 0-100 risk score. It starts at 85 and each incident adds a signed delta; the score never drops below 10.

**For {ctx.subject}:**
{current}

**Score interpretation:**
{_bullets(['**80-100** 🟢: Healthy, safe to stake', '**60-79** 🟡: Moderate risk, monitor regularly', '**10-59** 🔴: High risk, unstake or redelegate'])}

**Score changes:**
{changes}

Want to learn more about specific scoring factors?"""


def render_incident(ctx: TopicContext) -> str:
    incidents = ctx.assessment.incidents if ctx.assessment else []
    if incidents:
        listing = "\n\n".join(
            f"{n}. **{i.title}**\n   • Impact: {i.score_delta:+d} points\n"
            f"   • When: {i.timestamp.date().isoformat()}\n   • Severity: {i.severity.value}"
            for n, i in enumerate(incidents, start=1)
        )
    else:
        listing = "• No significant incidents detected in recent monitoring"

    if ctx.risk_level == RiskLevel.RED:
        advice = "🚨 **IMMEDIATE ACTION REQUIRED**\n" + _bullets([
            "Unstake or redelegate immediately",
            "Validator poses significant risk to your stake",
        ])
    elif ctx.risk_level == RiskLevel.YELLOW:
        advice = "⚠️ **MONITOR CLOSELY**\n" + _bullets([
            "Consider reducing exposure",
            "Watch for further deterioration",
        ])
    else:
        advice = "✅ **CONTINUE MONITORING**\n" + _bullets([
            "Validator appears stable",
            "Regular monitoring recommended",
        ])

    status = _bullets([
        f"Score: {ctx.score_text}",
        f"Risk Level: {ctx.risk_text}",
        "Jailed: Yes" if ctx.jailed else "Jailed: No",
        f"Status: {ctx.status_text}",
    ])
    perf = ctx.assessment.performance if ctx.assessment else None
    metrics = _bullets([
        f"Uptime: {perf.uptime:g}%" if perf else "Uptime: Unknown",
        f"Missed Blocks: {perf.missed_blocks}" if perf else "Missed Blocks: Unknown",
        f"Commission: {perf.commission_rate:g}%" if perf else "Commission: Unknown",
    ])
    return f"""**{ctx.subject} Incident Analysis**

**Current status:**
{status}

**Recent incidents ({len(incidents)} total):**
{listing}

**Performance metrics:**
{metrics}

**Recommendation:**
{advice}

Would you like more details about any specific incident or guidance on next steps?"""


def render_portfolio(ctx: TopicContext) -> str:
    if not ctx.wallet_address:
        return (
            "To analyze your personal staking portfolio, please connect your wallet first. "
            "Once connected, I can review all your delegations and provide specific recommendations."
        )
    portfolio = ctx.portfolio
    if portfolio is None:
        return (
            "I encountered an issue analyzing your delegations. "
            "Please try again or check your wallet connection."
        )

    note = ""
    if portfolio.degraded:
        note = "\n\n_Your wallet's delegations could not be fetched, so this is based on a sample portfolio._"

    risky = [r for r in portfolio.delegations if r.risk_level == RiskLevel.RED]
    if not risky:
        return (
            f"Great news! Your staking portfolio looks healthy with "
            f"{len(portfolio.delegations)} delegation(s).\n\n"
            "All your validators have acceptable risk scores. "
            "Keep monitoring for any changes in validator performance."
            + note
        )
    return (
        f"⚠️ I found {len(risky)} high-risk delegation(s) in your portfolio:\n\n"
        + _bullets([f"{r.validator_name} (Score: {r.score})" for r in risky])
        + f"\n\nTotal at risk: {portfolio.total_at_risk}\n\n"
        "I recommend taking action on these validators to protect your assets. "
        "Would you like specific guidance on unstaking or redelegating?"
        + note
    )


def render_greeting(ctx: TopicContext) -> str:
    if ctx.wallet_address:
        return (
            "Hello! I'm your staking assistant. I can help you with:\n\n"
            + _bullets([
                "Analyzing your current delegations",
                "Providing validator risk assessments",
                "Guiding you through unstaking/redelegating",
                "Explaining incident reports",
            ])
            + "\n\nWhat would you like to know about your staking positions?"
        )
    return (
        "Hello! I'm the staking assistant. I help with Sei validator analysis and staking decisions.\n\n"
        "Connect your wallet for personalized advice, or ask me general questions like:\n"
        + _bullets([
            '"Who are the safest validators?"',
            '"How does the score work?"',
            '"What makes a validator risky?"',
        ])
    )


def render_menu(ctx: TopicContext) -> str:
    about = ""
    if ctx.validator_name or ctx.validator_address:
        about = (
            f"\n\n**About {ctx.subject}:**\n"
            + _bullets([
                f"Address: {ctx.validator_address or 'Unknown'}",
                f"Current Status: {ctx.status_text}",
                f"Score: {ctx.score_text}",
            ])
        )
    return (
        "I'm not sure I understood that. Here are the topics I can help with:\n\n"
        + _bullets([
            '**"What does jailed mean?"** - validator penalties',
            '**"Why is this validator inactive?"** - validator statuses',
            "**\"What's a commission rate?\"** - validator fees",
            "**\"What's slashing?\"** - staking risks",
            '**"Should I unstake?"** - personalized advice',
            '**"Analyze my delegations"** - your portfolio',
            '**"How does redelegation work?"** - moving stake',
            '**"Who are the safest validators?"** - top picks',
            '**"Explain the score"** - risk assessment',
            '**"What happened?"** - incident analysis',
        ])
        + about
    )


# ── Routing table ───────────────────────────────────────────────────────────

ROUTES: tuple[TopicRoute, ...] = (
    TopicRoute("jailed", contains_any("jail"), render_jailed),
    TopicRoute("inactive", contains_any("inactive", "unbonded"), render_inactive),
    TopicRoute("commission", contains_any("commission", "fee"), render_commission),
    TopicRoute("slashing", contains_any("slash"), render_slashing),
    TopicRoute("unstake", contains_any("unstake", "undelegate"), render_unstake),
    TopicRoute("redelegate", contains_any("redelegate", "move"), render_redelegate),
    TopicRoute("safest", contains_any("safest", "best validator", "recommend"), render_safest),
    TopicRoute("portfolio", contains_any("my staking", "my delegation", "my portfolio", "staking advice"), render_portfolio),
    TopicRoute("score", contains_any("score"), render_score),
    TopicRoute("incident", contains_any("incident", "performance", "what happened"), render_incident),
    TopicRoute("greeting", whole_words("hello", "hi", "hey", "help"), render_greeting),
)


def route(text: str, routes: tuple[TopicRoute, ...] = ROUTES) -> Optional[TopicRoute]:
    """First matching route in priority order, or None."""
    lowered = text.lower()
    for candidate in routes:
        if candidate.predicate(lowered):
            return candidate
    return None


def answer(text: str, ctx: TopicContext, routes: tuple[TopicRoute, ...] = ROUTES) -> tuple[str, str]:
    """Return ``(topic_name, rendered_text)``; falls back to the help menu."""
    matched = route(text, routes)
    if matched is None:
        return MENU_TOPIC, render_menu(ctx)
    return matched.name, matched.render(ctx)
