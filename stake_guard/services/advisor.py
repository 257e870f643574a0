"""StakingAdvisor — the caller-facing facade over the recommendation engine.

Every operation returns a structured result.  Upstream outages never
surface: a failed delegation lookup uses a demo portfolio, a failed
validator fetch uses the deterministic fallback assessment, a failed
validator-list fetch uses the last cached (or a static) ranking.  Only
SessionNotFound reaches the caller.

Two session classes are kept in separate stores: wallet chats (long TTL,
client-chosen ids) and validator conversations (short TTL, generated ids).
``send_message`` routes to whichever store holds the id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from stake_guard.adapters.base import TelemetrySource
from stake_guard.assistant.callbacks import CallbackHandler
from stake_guard.assistant.orchestrator import AIFallbackOrchestrator
from stake_guard.core.recommendation import RecommendationComposer
from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.domain.analysis import IncidentAnalysis
from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.callback import CallbackResponse, slugify
from stake_guard.domain.enums import RiskLevel
from stake_guard.domain.errors import SessionNotFound, TelemetryUnavailable
from stake_guard.domain.recommendation import (
    PortfolioAnalysis,
    PortfolioSummary,
    Recommendation,
    TopValidator,
)
from stake_guard.domain.session import AssistantTurn, ConversationSession
from stake_guard.domain.telemetry import Delegation
from stake_guard.foundation.amounts import format_amount, from_base_units
from stake_guard.graph.runner import IncidentAnalysisRunner
from stake_guard.providers.base import CompletionProvider
from stake_guard.store.session_store import ConversationSessionStore

logger = logging.getLogger(__name__)

DEMO_DELEGATIONS: tuple[Delegation, ...] = (
    Delegation(
        validator_address="seivaloper1qdmt7sq86mawwq62gl3w9aheu3ak3vtqgjp8mm",
        validator_name="Enigma",
        shares="1000000000000000000000",
    ),
    Delegation(
        validator_address="seivaloper1q0ejqj0mg76cq2885rf6qrwvtht3nqgd9sy5rw",
        validator_name="STAKEME",
        shares="500000000000000000000",
    ),
    Delegation(
        validator_address="seivaloper1q3eq77eam27armtmcr7kft3m7350a30jhgwf26",
        validator_name="Forbole",
        shares="2000000000000000000000",
    ),
)

STATIC_TOP_VALIDATORS: tuple[TopValidator, ...] = (
    TopValidator(name="Imperator.co", score=98, uptime=99.9),
    TopValidator(name="StingRay", score=95, uptime=99.7),
    TopValidator(name="polkachu.com", score=92, uptime=99.5),
    TopValidator(name="Nodes.Guru", score=90, uptime=99.2),
)

TOP_VALIDATOR_COUNT = 5
PORTFOLIO_CACHE_SIZE = 1024


class StakingAdvisor:
    """Composes telemetry, scoring, recommendations and the assistant.

    Args:
        source: Telemetry source for validators and delegations.
        analyzer: Scoring core.
        composer: Recommendation composer (may hold a provider).
        chat_store: Store for wallet chat sessions.
        conversation_store: Store for validator conversations.
        provider: Optional completion provider for the assistant and the
            incident narrative.
        ai_timeout: Deadline for assistant and narrative provider calls.
        history_window: Prior messages sent to the provider per turn.
        share_decimals: Decimals of delegation shares.
        token_symbol: Display symbol for amounts.
        validator_list_limit: Page size when ranking validators.
    """

    def __init__(
        self,
        source: TelemetrySource,
        analyzer: IncidentAnalyzer,
        composer: RecommendationComposer,
        chat_store: ConversationSessionStore,
        conversation_store: ConversationSessionStore,
        provider: Optional[CompletionProvider] = None,
        ai_timeout: Optional[float] = None,
        history_window: int = 8,
        share_decimals: int = 18,
        token_symbol: str = "SEI",
        validator_list_limit: int = 100,
    ) -> None:
        self._source = source
        self._analyzer = analyzer
        self._composer = composer
        self._chat_store = chat_store
        self._conversation_store = conversation_store
        self._provider = provider
        self._share_decimals = share_decimals
        self._symbol = token_symbol
        self._validator_list_limit = validator_list_limit

        # slug → (address, name) for callback targets
        self._directory: dict[str, tuple[str, str]] = {}
        for d in DEMO_DELEGATIONS:
            self._remember(d.validator_address, d.validator_name)
        self._top_validators: list[TopValidator] = list(STATIC_TOP_VALIDATORS)
        # wallet → last analysis, oldest first
        self._portfolios: dict[str, PortfolioAnalysis] = {}

        self._callbacks = CallbackHandler(
            top_validators=self.top_validators,
            assessment_for_slug=self._assessment_for_slug,
            high_risk_count=self._high_risk_count,
        )
        self._chat = AIFallbackOrchestrator(
            chat_store,
            provider=provider,
            timeout=ai_timeout,
            history_window=history_window,
            top_validators=self.cached_top_validators,
            portfolio=self.cached_portfolio,
            callbacks=self._callbacks,
        )
        self._conversation = AIFallbackOrchestrator(
            conversation_store,
            provider=provider,
            timeout=ai_timeout,
            history_window=history_window,
            top_validators=self.cached_top_validators,
        )
        self._incidents = IncidentAnalysisRunner(source, analyzer, provider, ai_timeout)

    @property
    def provider_name(self) -> str:
        return self._provider.name if self._provider else "none"

    # ── Recommendations ──────────────────────────────────────────────────

    async def get_recommendations(self, user_address: str) -> PortfolioAnalysis:
        delegations, demo = await self._delegations(user_address)
        assessments = await self._assess_all(delegations)
        recommendations: list[Recommendation] = await asyncio.gather(*(
            self._composer.compose(assessment, self._staked_amount(d))
            for d, assessment in zip(delegations, assessments)
        ))
        analysis = self._composer.summarize(user_address, list(recommendations))
        if demo:
            analysis = analysis.model_copy(update={"degraded": True})
        self._cache_portfolio(analysis)
        logger.info(
            "Recommendations for %s: %d delegation(s), at risk %s, degraded=%s",
            user_address, len(recommendations), analysis.total_at_risk, analysis.degraded,
        )
        return analysis

    async def get_portfolio_summary(self, user_address: str) -> PortfolioSummary:
        return self._composer.condense(await self.get_recommendations(user_address))

    def cached_portfolio(self, wallet_address: str) -> Optional[PortfolioAnalysis]:
        """Last analysis of *wallet_address*, without touching the network."""
        return self._portfolios.get(wallet_address)

    async def get_validator_incident_analysis(
        self, validator_address: str, validator_name: Optional[str] = None
    ) -> IncidentAnalysis:
        analysis = await self._incidents.run(validator_address, name_hint=validator_name)
        self._remember(validator_address, analysis.assessment.validator_name)
        return analysis

    # ── Sessions ─────────────────────────────────────────────────────────

    async def start_session(
        self,
        validator_address: str,
        validator_name: str,
        wallet_address: Optional[str] = None,
    ) -> ConversationSession:
        """Open a validator conversation bound to a fresh assessment."""
        assessment = await self._assess(validator_address, validator_name)
        return await self._conversation_store.create(
            wallet_address=wallet_address,
            validator_address=validator_address,
            validator_name=validator_name,
            validator_context=assessment,
        )

    async def open_chat(self, session_id: str, wallet_address: Optional[str] = None) -> ConversationSession:
        """Resume or create a wallet chat; a new wallet's portfolio is analyzed up front."""
        session = await self._chat_store.get_or_create(session_id, wallet_address)
        if session.wallet_address and session.wallet_address not in self._portfolios:
            await self.get_recommendations(session.wallet_address)
        return session

    async def send_message(self, session_id: str, text: str) -> AssistantTurn:
        """Answer one user turn.

        Raises:
            SessionNotFound: If neither store holds *session_id*.
        """
        if await self._conversation_store.get(session_id) is not None:
            return await self._conversation.respond(session_id, text)
        return await self._chat.respond(session_id, text)

    async def get_conversation(self, session_id: str) -> ConversationSession:
        session = await self._conversation_store.get(session_id)
        if session is None:
            session = await self._chat_store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def sweep(self) -> dict[str, int]:
        chats = await self._chat_store.sweep()
        conversations = await self._conversation_store.sweep()
        return {"chat_sessions": len(chats), "conversations": len(conversations)}

    async def session_counts(self) -> dict[str, int]:
        return {
            "chat_sessions": await self._chat_store.count(),
            "conversations": await self._conversation_store.count(),
        }

    # ── Callbacks ────────────────────────────────────────────────────────

    async def handle_callback(self, callback_id: str, user_address: str) -> CallbackResponse:
        return await self._callbacks.handle(callback_id, user_address)

    # ── Validator ranking ────────────────────────────────────────────────

    def cached_top_validators(self) -> list[TopValidator]:
        return list(self._top_validators)

    async def top_validators(self) -> list[TopValidator]:
        """Green validators ranked by score, refreshed from the chain when possible."""
        try:
            validators = await self._source.fetch_validators(self._validator_list_limit)
        except TelemetryUnavailable as exc:
            logger.warning("%s — using cached validator ranking", exc)
            return self.cached_top_validators()

        ranked: list[tuple[int, int, TopValidator]] = []
        for telemetry in validators:
            self._remember(telemetry.address, telemetry.name)
            assessment = self._analyzer.analyze(telemetry)
            if assessment.risk_level != RiskLevel.GREEN:
                continue
            ranked.append((
                assessment.current_score,
                telemetry.tokens,
                TopValidator(
                    name=telemetry.name,
                    score=assessment.current_score,
                    uptime=telemetry.uptime,
                    address=telemetry.address,
                ),
            ))
        ranked.sort(key=lambda item: (item[0], item[1]), reverse=True)
        if ranked:
            self._top_validators = [item[2] for item in ranked[:TOP_VALIDATOR_COUNT]]
        return self.cached_top_validators()

    # ── Internals ────────────────────────────────────────────────────────

    def _remember(self, address: str, name: str) -> None:
        slug = slugify(name)
        if slug:
            self._directory[slug] = (address, name)

    def _cache_portfolio(self, analysis: PortfolioAnalysis) -> None:
        self._portfolios.pop(analysis.user_address, None)
        self._portfolios[analysis.user_address] = analysis
        while len(self._portfolios) > PORTFOLIO_CACHE_SIZE:
            del self._portfolios[next(iter(self._portfolios))]

    def _staked_amount(self, delegation: Delegation) -> str:
        return format_amount(from_base_units(delegation.shares, self._share_decimals), self._symbol)

    async def _delegations(self, user_address: str) -> tuple[list[Delegation], bool]:
        try:
            delegations = await self._source.fetch_delegations(user_address)
        except TelemetryUnavailable as exc:
            logger.warning("%s — using demo delegations", exc)
            return list(DEMO_DELEGATIONS), True
        for d in delegations:
            self._remember(d.validator_address, d.validator_name)
        return delegations, False

    async def _assess(self, address: str, name: str) -> RiskAssessment:
        try:
            telemetry = await self._source.fetch_validator(address)
        except TelemetryUnavailable as exc:
            logger.warning("%s — using fallback assessment", exc)
            return self._analyzer.fallback(address, name)
        return self._analyzer.analyze(telemetry)

    async def _assess_all(self, delegations: list[Delegation]) -> list[RiskAssessment]:
        return list(await asyncio.gather(*(
            self._assess(d.validator_address, d.validator_name) for d in delegations
        )))

    async def _assessment_for_slug(self, slug: str) -> Optional[RiskAssessment]:
        entry = self._directory.get(slug)
        if entry is None:
            return None
        return await self._assess(*entry)

    async def _high_risk_count(self, user_address: str) -> int:
        delegations, _ = await self._delegations(user_address)
        assessments = await self._assess_all(delegations)
        return sum(1 for a in assessments if a.risk_level == RiskLevel.RED)

    async def close(self) -> None:
        await self._source.close()
        if self._provider is not None:
            await self._provider.close()
