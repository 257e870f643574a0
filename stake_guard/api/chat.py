"""REST endpoints for wallet chat sessions.

Paths:
    POST /api/chat/session   — open (or resume) a chat keyed by a client id
    POST /api/chat/message   — one user turn; answered within the AI deadline
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from stake_guard.services.advisor import StakingAdvisor


class OpenChatRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    wallet_address: Optional[str] = None


class MessageRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


def create_chat_router(advisor: StakingAdvisor) -> APIRouter:

    router = APIRouter(prefix="/api/chat", tags=["chat"])

    @router.post("/session")
    async def open_session(body: OpenChatRequest) -> dict[str, Any]:
        session = await advisor.open_chat(body.session_id, body.wallet_address)
        return session.summary()

    @router.post("/message")
    async def send_message(body: MessageRequest) -> dict[str, Any]:
        # SessionNotFound is mapped to 404 by the app-level handler
        turn = await advisor.send_message(body.session_id, body.message)
        return turn.model_dump(mode="json")

    return router
