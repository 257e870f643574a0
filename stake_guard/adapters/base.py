"""Abstract bases for telemetry adapters and sources.

Telemetry adapters normalise raw validator records from the chain API
into the canonical ValidatorTelemetry model.  Telemetry sources perform
the I/O and hand raw records to an adapter.

Architectural rules:
    1. Adapters must NOT mutate the incoming payload dict.
    2. adapt() must return a fully valid ValidatorTelemetry or raise ValueError.
    3. No scoring logic lives inside an adapter — only field mapping.
    4. Sources raise TelemetryUnavailable for every failure mode so callers
       can substitute deterministic fallback data.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from stake_guard.domain.telemetry import Delegation, ValidatorTelemetry


class TelemetryAdapter(ABC):
    """Base class for converting raw upstream records into ValidatorTelemetry."""

    @abstractmethod
    def can_handle(self, raw: dict[str, Any]) -> bool:
        """Return True if this adapter knows how to translate *raw*.

        Must be a fast, non-destructive check (e.g. key presence).
        """
        ...

    @abstractmethod
    def adapt(self, raw: dict[str, Any]) -> ValidatorTelemetry:
        """Translate a raw record into a validated ValidatorTelemetry.

        Raises:
            ValueError: If the record cannot be normalised.
        """
        ...

    @property
    @abstractmethod
    def source_name(self) -> str:
        ...


class TelemetrySource(ABC):
    """Read-only access to validator and delegation data."""

    @abstractmethod
    async def fetch_validator(self, address: str) -> ValidatorTelemetry:
        """Raises TelemetryUnavailable."""
        ...

    @abstractmethod
    async def fetch_validators(self, limit: int = 100) -> list[ValidatorTelemetry]:
        """Raises TelemetryUnavailable."""
        ...

    @abstractmethod
    async def fetch_delegations(self, user_address: str) -> list[Delegation]:
        """Raises TelemetryUnavailable."""
        ...

    async def close(self) -> None:
        return None
