"""stake-guard — Validator risk scoring, staking recommendations & assistant.

This is the application entry point.  It wires the telemetry source,
IncidentAnalyzer, RecommendationComposer, session stores, completion
provider and the HTTP routers together.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stake_guard.adapters.cosmos import CosmosRestTelemetrySource
from stake_guard.api.advisor import create_advisor_router
from stake_guard.api.chat import create_chat_router
from stake_guard.api.conversation import create_conversation_router
from stake_guard.assistant.templates import chat_welcome, conversation_welcome
from stake_guard.config import Settings, settings
from stake_guard.core.recommendation import RecommendationComposer
from stake_guard.core.scoring import IncidentAnalyzer
from stake_guard.domain.errors import SessionNotFound
from stake_guard.providers.registry import build_provider
from stake_guard.services.advisor import StakingAdvisor
from stake_guard.store.session_store import ConversationSessionStore

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


# ── Wiring ───────────────────────────────────────────────────────────────────

def build_advisor(cfg: Settings) -> StakingAdvisor:
    """Assemble a StakingAdvisor from configuration."""
    provider = build_provider(cfg)

    source = CosmosRestTelemetrySource(
        chain_rest_url=cfg.chain_rest_url,
        delegations_api_url=cfg.delegations_api_url,
        timeout=cfg.http_timeout_seconds,
    )
    analyzer = IncidentAnalyzer(token_symbol=cfg.token_symbol, token_decimals=cfg.token_decimals)
    composer = RecommendationComposer(
        provider=provider,
        timeout=cfg.composer_timeout_seconds,
        token_symbol=cfg.token_symbol,
    )

    chat_store = ConversationSessionStore(
        ttl=timedelta(hours=cfg.chat_session_ttl_hours),
        welcome=chat_welcome,
        id_prefix="chat",
        name="chat_sessions",
    )
    conversation_store = ConversationSessionStore(
        ttl=timedelta(hours=cfg.conversation_session_ttl_hours),
        welcome=conversation_welcome,
        id_prefix="conv",
        name="conversations",
    )

    return StakingAdvisor(
        source=source,
        analyzer=analyzer,
        composer=composer,
        chat_store=chat_store,
        conversation_store=conversation_store,
        provider=provider,
        ai_timeout=provider.default_timeout if provider else None,
        history_window=cfg.history_window,
        share_decimals=cfg.share_decimals,
        token_symbol=cfg.token_symbol,
        validator_list_limit=cfg.validator_list_limit,
    )


async def _sweep_forever(advisor: StakingAdvisor, interval: timedelta) -> None:
    while True:
        await asyncio.sleep(interval.total_seconds())
        try:
            evicted = await advisor.sweep()
        except Exception:
            logger.exception("Session sweep failed; retrying in %s", interval)
            continue
        logger.info("Session sweep: %s", evicted)


# ── App ──────────────────────────────────────────────────────────────────────

def create_app(advisor: StakingAdvisor, sweep_interval: timedelta | None = None) -> FastAPI:
    """Build the FastAPI app around *advisor*.

    Args:
        advisor: The facade every route delegates to.
        sweep_interval: Period of the background session sweep; None disables it.
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        sweeper = None
        if sweep_interval is not None:
            sweeper = asyncio.create_task(_sweep_forever(advisor, sweep_interval))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
            await advisor.close()

    app = FastAPI(
        title=settings.app_name,
        description="Validator risk scoring, staking recommendations & assistant",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(SessionNotFound)
    async def session_not_found(_: Request, exc: SessionNotFound) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": "session_not_found", "message": str(exc)},
        )

    # ── Routes ───────────────────────────────────────────────────────────

    app.include_router(create_advisor_router(advisor))
    app.include_router(create_chat_router(advisor))
    app.include_router(create_conversation_router(advisor))

    # ── Health ───────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict:
        counts = await advisor.session_counts()
        return {
            "status": "ok",
            "ai_provider": advisor.provider_name,
            "chat_sessions": counts["chat_sessions"],
            "conversations": counts["conversations"],
        }

    return app


app = create_app(
    build_advisor(settings),
    sweep_interval=timedelta(minutes=settings.sweep_interval_minutes),
)
