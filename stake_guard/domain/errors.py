"""Exception hierarchy for stake-guard.

Transient upstream failures (telemetry, completion) are recovered locally
and never reach the caller.  Invariant violations (unknown session,
malformed callback id) are typed so the HTTP layer can map them to a safe
response.
"""

from __future__ import annotations


class StakeGuardError(Exception):
    """Base class for all stake-guard errors."""


class TelemetryUnavailable(StakeGuardError):
    """Raised when validator or delegation data cannot be fetched."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Telemetry unavailable for '{target}': {reason}")


class CompletionError(StakeGuardError):
    """Raised by a completion provider that failed or returned nothing usable."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"Completion provider '{provider}' failed: {reason}")


class SessionNotFound(StakeGuardError):
    """Raised when a session id is absent or has been evicted."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class UnknownCallback(StakeGuardError):
    """Raised when a callback id does not follow the ``<verb>_<slug>`` convention."""

    def __init__(self, callback_id: str, reason: str) -> None:
        self.callback_id = callback_id
        self.reason = reason
        super().__init__(f"Unknown callback '{callback_id}': {reason}")
