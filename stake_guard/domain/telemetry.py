"""Canonical validator telemetry — the contract between the chain API and scoring.

A ValidatorTelemetry is an immutable per-fetch snapshot.  Adapters
normalise heterogeneous upstream records into this shape so the scorer
never has to re-check field constraints.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from stake_guard.domain.enums import BondStatus


class ValidatorTelemetry(BaseModel):
    """Snapshot of one validator as seen by a single API poll."""

    address: str = Field(..., min_length=1, description="Operator address")
    name: str = Field(..., min_length=1, description="Display name (moniker)")
    status: BondStatus
    jailed: bool = False
    commission_rate: float = Field(..., ge=0.0, le=1.0)
    commission_max_rate: float = Field(0.0, ge=0.0, le=1.0)
    commission_max_change_rate: float = Field(0.0, ge=0.0, le=1.0)
    commission_updated_at: Optional[datetime] = None
    unbonding_time: Optional[datetime] = None
    tokens: int = Field(0, ge=0, description="Bonded tokens in base units")
    uptime: float = Field(..., ge=0.0, le=100.0, description="Uptime percentage")
    missed_blocks: int = Field(0, ge=0)
    voting_power_rank: Optional[int] = Field(None, ge=1)

    model_config = {"frozen": True}

    @field_validator("commission_updated_at", "unbonding_time")
    @classmethod
    def timestamps_must_be_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_bonded(self) -> bool:
        return self.status == BondStatus.BONDED


class Delegation(BaseModel):
    """One of a user's stake positions."""

    validator_address: str = Field(..., min_length=1)
    validator_name: str = Field(..., min_length=1)
    shares: str = Field("0", description="Delegated shares in base units")

    model_config = {"frozen": True}
