"""REST endpoints for staking recommendations, callbacks and incident analysis.

Paths:
    POST /api/advisor/recommendations
    POST /api/advisor/portfolio
    POST /api/advisor/callback
    POST /api/advisor/incidents

Upstream outages never surface here: the advisor always returns a
(possibly degraded) result.  Missing request fields are rejected by the
request models with 422.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from stake_guard.services.advisor import StakingAdvisor

logger = logging.getLogger(__name__)


class UserRequest(BaseModel):
    user_address: str = Field(..., min_length=1)


class CallbackRequest(BaseModel):
    callback_id: str = Field(..., min_length=1)
    user_address: str = Field(..., min_length=1)


class IncidentRequest(BaseModel):
    validator_address: str = Field(..., min_length=1)
    validator_name: Optional[str] = None


def create_advisor_router(advisor: StakingAdvisor) -> APIRouter:
    """Factory that wires the advisor endpoints to a StakingAdvisor."""

    router = APIRouter(prefix="/api/advisor", tags=["advisor"])

    @router.post("/recommendations")
    async def recommendations(body: UserRequest) -> dict[str, Any]:
        analysis = await advisor.get_recommendations(body.user_address)
        return analysis.model_dump(mode="json")

    @router.post("/portfolio")
    async def portfolio(body: UserRequest) -> dict[str, Any]:
        summary = await advisor.get_portfolio_summary(body.user_address)
        return summary.model_dump(mode="json")

    @router.post("/callback")
    async def callback(body: CallbackRequest) -> dict[str, Any]:
        response = await advisor.handle_callback(body.callback_id, body.user_address)
        logger.info("Callback %s for %s answered with %s", body.callback_id, body.user_address, response.type.value)
        return response.model_dump(mode="json")

    @router.post("/incidents")
    async def incidents(body: IncidentRequest) -> dict[str, Any]:
        analysis = await advisor.get_validator_incident_analysis(
            body.validator_address, body.validator_name
        )
        logger.info(
            "Incident analysis %s for %s: score %d, narrated=%s",
            analysis.analysis_id, body.validator_address,
            analysis.assessment.current_score, analysis.ai_narrated,
        )
        return analysis.model_dump(mode="json")

    return router
