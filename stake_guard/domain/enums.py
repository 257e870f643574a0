"""Controlled enumerations for the stake-guard domain.

Every categorical field in the domain MUST reference an enum defined here.
Free-form strings are not acceptable for classification fields.
"""

from __future__ import annotations

from enum import Enum


class BondStatus(str, Enum):
    """Validator participation state as reported by the staking module."""

    BONDED = "bonded"
    UNBONDING = "unbonding"
    UNBONDED = "unbonded"


class RiskLevel(str, Enum):
    """Three-tier classification derived from a numeric score."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentType(str, Enum):
    """Discrete events that move a validator's score."""

    JAILED = "jailed"
    INACTIVE = "inactive"
    HIGH_COMMISSION = "high_commission"
    EXCESSIVE_COMMISSION = "excessive_commission"
    HIGH_MAX_COMMISSION_RISK = "high_max_commission_risk"
    PERFORMANCE = "performance"
    GOVERNANCE = "governance"
    SLASHING = "slashing"
    COMMUNITY_REPORT = "community_report"


class PortfolioRiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ReplySource(str, Enum):
    """Which path produced an assistant turn."""

    AI = "ai"
    FALLBACK = "fallback"


class CallbackVerb(str, Enum):
    """Scripted follow-up actions triggered by UI buttons."""

    UNSTAKE = "unstake"
    REDELEGATE = "redelegate"
    INCIDENTS = "incidents"
    GENERAL_ADVICE = "general_advice"


class CallbackResponseType(str, Enum):
    UNSTAKE_GUIDE = "unstake_guide"
    REDELEGATE_GUIDE = "redelegate_guide"
    INCIDENT_REPORT = "incident_report"
    GENERAL_ADVICE = "general_advice"
    ERROR = "error"
