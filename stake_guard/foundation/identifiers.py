"""ID generation for sessions, messages and analyses."""

from __future__ import annotations

import secrets
import string
from datetime import datetime
from uuid import uuid4

_ALPHABET = string.ascii_lowercase + string.digits


def new_id() -> str:
    """Generate a new random UUID v4 string for domain objects."""
    return str(uuid4())


def new_session_id(now: datetime, prefix: str = "conv") -> str:
    """Opaque session id derived from the creation time plus 9 random chars."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(now.timestamp() * 1000)}_{suffix}"
