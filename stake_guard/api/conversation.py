"""REST endpoints for validator-scoped conversations.

Paths:
    POST /api/conversation/start
    POST /api/conversation/message
    GET  /api/conversation/{session_id}

A conversation is bound to one validator's assessment at start time and
expires after a short idle TTL.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from stake_guard.services.advisor import StakingAdvisor

logger = logging.getLogger(__name__)


class StartConversationRequest(BaseModel):
    validator_address: str = Field(..., min_length=1)
    validator_name: str = Field(..., min_length=1)
    wallet_address: Optional[str] = None


class ConversationMessageRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


def create_conversation_router(advisor: StakingAdvisor) -> APIRouter:
    """Factory that wires the conversation endpoints to a StakingAdvisor."""

    router = APIRouter(prefix="/api/conversation", tags=["conversation"])

    @router.post("/start")
    async def start(body: StartConversationRequest) -> dict[str, Any]:
        session = await advisor.start_session(
            body.validator_address, body.validator_name, body.wallet_address
        )
        logger.info("Conversation %s started for %s", session.session_id, body.validator_name)
        summary = session.summary()
        if session.validator_context is not None:
            summary["validator_context"] = session.validator_context.model_dump(mode="json")
        return summary

    @router.post("/message")
    async def message(body: ConversationMessageRequest) -> dict[str, Any]:
        turn = await advisor.send_message(body.session_id, body.message)
        return turn.model_dump(mode="json")

    @router.get("/{session_id}")
    async def history(session_id: str) -> dict[str, Any]:
        session = await advisor.get_conversation(session_id)
        return session.summary()

    return router
