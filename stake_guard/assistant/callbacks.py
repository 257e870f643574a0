"""CallbackHandler — scripted follow-ups triggered by UI action buttons.

The raw callback id is parsed once into a CallbackAction; dispatch below
works on the verb enum only.  Malformed ids never raise out of ``handle``:
they produce the generic "didn't understand" response so the UI stays
usable.
"""

from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Optional

from stake_guard.assistant import templates
from stake_guard.domain.assessment import RiskAssessment
from stake_guard.domain.callback import CallbackAction, CallbackResponse, parse_callback
from stake_guard.domain.enums import CallbackResponseType, CallbackVerb
from stake_guard.domain.errors import StakeGuardError, UnknownCallback
from stake_guard.domain.recommendation import TopValidator

logger = logging.getLogger(__name__)

TopValidatorsLookup = Callable[[], Awaitable[list[TopValidator]]]
AssessmentLookup = Callable[[str], Awaitable[Optional[RiskAssessment]]]
HighRiskCounter = Callable[[str], Awaitable[int]]

_FAILURE_MESSAGE = (
    "I encountered an error processing your request. Please try again or contact support."
)

# ── Named-validator requests in free text ──────────────────────────────────

_TARGET = r"(?P<name>[a-z0-9][a-z0-9. ]*?)(?=\s+(?:to|instead|now|please)\b|[?!,;:]|\.?\s*$)"

_ACTION_PATTERNS: tuple[tuple[CallbackVerb, re.Pattern[str]], ...] = (
    (CallbackVerb.UNSTAKE, re.compile(r"\b(?:unstake|undelegate)\s+(?:my\s+stake\s+|everything\s+)?from\s+" + _TARGET)),
    (CallbackVerb.REDELEGATE, re.compile(r"\b(?:redelegate|move)\b.*?\bfrom\s+" + _TARGET)),
    (CallbackVerb.INCIDENTS, re.compile(r"\b(?:incidents?|happened)\b.*?\b(?:to|with)\s+" + _TARGET)),
)

# leading words that refer back to a validator instead of naming one
_REFERENTS = frozenset({"a", "an", "the", "it", "this", "that", "these", "those", "them", "my", "your", "our"})


def action_from_text(text: str) -> Optional[CallbackAction]:
    """Map "unstake from X" style requests to the scripted action for X.

    Returns None when the text names no validator, e.g. "should I unstake
    from this validator?".
    """
    lowered = " ".join(text.lower().split())
    for verb, pattern in _ACTION_PATTERNS:
        match = pattern.search(lowered)
        if match is None:
            continue
        name = match.group("name").strip(" .")
        if not name or name.split()[0] in _REFERENTS:
            return None
        return CallbackAction.for_validator(verb, name)
    return None


async def _no_validators() -> list[TopValidator]:
    return []


async def _no_assessment(slug: str) -> Optional[RiskAssessment]:
    return None


async def _no_risk(actor_id: str) -> int:
    return 0


class CallbackHandler:
    """Dispatches parsed callback actions to their scripted responses.

    Args:
        top_validators: Redelegation candidates, best first.
        assessment_for_slug: Assessment of the validator a slug refers to,
            or None when the slug is not a known validator.
        high_risk_count: Number of red delegations held by an actor.
    """

    def __init__(
        self,
        top_validators: TopValidatorsLookup = _no_validators,
        assessment_for_slug: AssessmentLookup = _no_assessment,
        high_risk_count: HighRiskCounter = _no_risk,
    ) -> None:
        self._top_validators = top_validators
        self._assessment_for_slug = assessment_for_slug
        self._high_risk_count = high_risk_count

    async def handle(self, callback_id: str, actor_id: str) -> CallbackResponse:
        try:
            action = parse_callback(callback_id)
        except UnknownCallback as exc:
            logger.info("%s", exc)
            return CallbackResponse(
                message=templates.UNKNOWN_CALLBACK_MESSAGE,
                type=CallbackResponseType.ERROR,
            )

        logger.info("Handling callback %s for %s", action.callback_id, actor_id)
        try:
            return await self._dispatch(action, actor_id)
        except StakeGuardError as exc:
            logger.error("Callback %s failed: %s", action.callback_id, exc)
            return CallbackResponse(message=_FAILURE_MESSAGE, type=CallbackResponseType.ERROR)

    async def _dispatch(self, action: CallbackAction, actor_id: str) -> CallbackResponse:
        label = action.target_label

        if action.verb == CallbackVerb.UNSTAKE:
            return CallbackResponse(
                message=templates.unstake_guide(label),
                type=CallbackResponseType.UNSTAKE_GUIDE,
            )

        if action.verb == CallbackVerb.REDELEGATE:
            top = await self._top_validators()
            return CallbackResponse(
                message=templates.redelegate_guide(label, top),
                type=CallbackResponseType.REDELEGATE_GUIDE,
            )

        if action.verb == CallbackVerb.INCIDENTS:
            assessment = await self._assessment_for_slug(action.target_slug)
            return CallbackResponse(
                message=templates.incident_report(label, assessment),
                type=CallbackResponseType.INCIDENT_REPORT,
            )

        count = await self._high_risk_count(actor_id)
        return CallbackResponse(
            message=templates.general_advice(count),
            type=CallbackResponseType.GENERAL_ADVICE,
        )
