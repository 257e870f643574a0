"""Timezone-aware clock utilities.

All timestamps in stake-guard MUST be UTC-aware.  This module is the
single source of "now".  Components that reason about elapsed time take
a ``Clock`` so tests can inject a virtual one instead of patching.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)
