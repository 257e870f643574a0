"""Callback ids — parsed once at the boundary into a tagged variant.

Wire format is ``<verb>_<slug>`` (e.g. ``unstake_four_pillars``) plus the
bare ``general_advice``.  Nothing below the parser ever looks at the raw
string again.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

from stake_guard.domain.enums import CallbackResponseType, CallbackVerb
from stake_guard.domain.errors import UnknownCallback

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lowercase *name* and collapse every non-alphanumeric run into ``_``."""
    return _NON_ALNUM.sub("_", name.lower()).strip("_")


class CallbackAction(BaseModel):
    verb: CallbackVerb
    target_slug: str = ""

    model_config = {"frozen": True}

    @property
    def callback_id(self) -> str:
        if self.verb == CallbackVerb.GENERAL_ADVICE:
            return self.verb.value
        return f"{self.verb.value}_{self.target_slug}"

    @property
    def target_label(self) -> str:
        """Human label recovered from the slug (``four_pillars`` → ``FOUR PILLARS``)."""
        return self.target_slug.replace("_", " ").upper()

    @classmethod
    def for_validator(cls, verb: CallbackVerb, validator_name: str) -> "CallbackAction":
        return cls(verb=verb, target_slug=slugify(validator_name) or "validator")


class CallbackResponse(BaseModel):
    message: str
    type: CallbackResponseType

    model_config = {"frozen": True}


def parse_callback(callback_id: str) -> CallbackAction:
    """Parse a raw callback id.

    Raises:
        UnknownCallback: If the verb is not recognised or the slug is empty.
    """
    raw = (callback_id or "").strip().lower()
    if raw == CallbackVerb.GENERAL_ADVICE.value:
        return CallbackAction(verb=CallbackVerb.GENERAL_ADVICE)

    verb_text, sep, slug = raw.partition("_")
    if not sep:
        raise UnknownCallback(callback_id, "missing '_' separator")
    try:
        verb = CallbackVerb(verb_text)
    except ValueError:
        raise UnknownCallback(callback_id, f"unsupported verb '{verb_text}'") from None

    slug = slugify(slug)
    if not slug:
        raise UnknownCallback(callback_id, "empty target")
    return CallbackAction(verb=verb, target_slug=slug)
