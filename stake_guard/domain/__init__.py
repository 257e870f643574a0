from stake_guard.domain.analysis import IncidentAnalysis
from stake_guard.domain.assessment import Incident, PerformanceMetrics, RiskAssessment
from stake_guard.domain.callback import CallbackAction, CallbackResponse
from stake_guard.domain.recommendation import (
    PortfolioAnalysis,
    PortfolioSummary,
    Recommendation,
    TopValidator,
)
from stake_guard.domain.session import AssistantTurn, ChatMessage, ConversationSession
from stake_guard.domain.telemetry import Delegation, ValidatorTelemetry

__all__ = [
    "AssistantTurn",
    "CallbackAction",
    "CallbackResponse",
    "ChatMessage",
    "ConversationSession",
    "Delegation",
    "Incident",
    "IncidentAnalysis",
    "PerformanceMetrics",
    "PortfolioAnalysis",
    "PortfolioSummary",
    "Recommendation",
    "RiskAssessment",
    "TopValidator",
    "ValidatorTelemetry",
]
