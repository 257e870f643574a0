"""Cosmos staking-module adapter and REST telemetry source.

Expected raw validator format (``/cosmos/staking/v1beta1/validators``):
{
    "operator_address": "seivaloper1...",
    "jailed": false,
    "status": "BOND_STATUS_BONDED",
    "tokens": "1234000000",
    "description": {"moniker": "Four Pillars"},
    "unbonding_time": "1970-01-01T00:00:00Z",
    "commission": {
        "commission_rates": {
            "rate": "0.050000000000000000",
            "max_rate": "0.200000000000000000",
            "max_change_rate": "0.010000000000000000"
        },
        "update_time": "2024-05-01T12:00:00.123456789Z"
    }
}

The staking module reports neither uptime nor missed blocks.  When an
enriched record carries them they are used as-is, otherwise deterministic
defaults are derived from the validator's state.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Optional

import httpx

from stake_guard.adapters.base import TelemetryAdapter, TelemetrySource
from stake_guard.domain.enums import BondStatus
from stake_guard.domain.errors import TelemetryUnavailable
from stake_guard.domain.telemetry import Delegation, ValidatorTelemetry

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, BondStatus] = {
    "BOND_STATUS_BONDED": BondStatus.BONDED,
    "BOND_STATUS_UNBONDING": BondStatus.UNBONDING,
    "BOND_STATUS_UNBONDED": BondStatus.UNBONDED,
    "BOND_STATUS_UNSPECIFIED": BondStatus.UNBONDED,
}

# (uptime %, missed blocks) when the record does not report them
_DEFAULT_METRICS: dict[str, tuple[float, int]] = {
    "active": (99.5, 0),
    "inactive": (92.0, 45),
    "jailed": (85.0, 150),
}

_FRACTION = re.compile(r"(\.\d{6})\d+")
_EPOCH_YEAR = 1970


def parse_chain_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 chain timestamp; nanoseconds are truncated.

    The zero value (``1970-01-01T00:00:00Z``) means "never" and maps to None.
    """
    if not value:
        return None
    text = _FRACTION.sub(r"\1", value.strip()).replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.year <= _EPOCH_YEAR:
        return None
    return parsed


def _rate(value: Any, field: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"cosmos validator has invalid '{field}': {value!r}") from None


class CosmosValidatorAdapter(TelemetryAdapter):
    """Maps Cosmos staking-module validator records to ValidatorTelemetry."""

    @property
    def source_name(self) -> str:
        return "cosmos_staking"

    def can_handle(self, raw: dict[str, Any]) -> bool:
        return "operator_address" in raw and "commission" in raw

    def adapt(self, raw: dict[str, Any]) -> ValidatorTelemetry:
        # ── Identity ─────────────────────────────────────────────────────
        address = raw.get("operator_address")
        if not address:
            raise ValueError("cosmos validator missing 'operator_address'")
        name = (raw.get("description") or {}).get("moniker") or address

        # ── Status ───────────────────────────────────────────────────────
        raw_status = str(raw.get("status", "")).upper()
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            try:
                status = BondStatus(raw_status.lower())
            except ValueError:
                raise ValueError(f"cosmos validator has unknown status {raw_status!r}") from None
        jailed = bool(raw.get("jailed", False))

        # ── Commission ───────────────────────────────────────────────────
        commission = raw.get("commission") or {}
        rates = commission.get("commission_rates") or {}
        if "rate" not in rates:
            raise ValueError("cosmos validator missing 'commission_rates.rate'")

        # ── Performance ──────────────────────────────────────────────────
        if jailed:
            default_uptime, default_missed = _DEFAULT_METRICS["jailed"]
        elif status != BondStatus.BONDED:
            default_uptime, default_missed = _DEFAULT_METRICS["inactive"]
        else:
            default_uptime, default_missed = _DEFAULT_METRICS["active"]

        return ValidatorTelemetry(
            address=address,
            name=name,
            status=status,
            jailed=jailed,
            commission_rate=_rate(rates["rate"], "rate"),
            commission_max_rate=_rate(rates.get("max_rate", 0), "max_rate"),
            commission_max_change_rate=_rate(rates.get("max_change_rate", 0), "max_change_rate"),
            commission_updated_at=parse_chain_time(commission.get("update_time")),
            unbonding_time=parse_chain_time(raw.get("unbonding_time")),
            tokens=int(raw.get("tokens") or 0),
            uptime=float(raw.get("uptime", default_uptime)),
            missed_blocks=int(raw.get("missed_blocks", default_missed)),
            voting_power_rank=raw.get("voting_power_rank"),
        )


class CosmosRestTelemetrySource(TelemetrySource):
    """Fetches validators from the chain REST API and delegations from an explorer.

    Every failure (transport, HTTP status, malformed body) is raised as
    TelemetryUnavailable.
    """

    def __init__(
        self,
        chain_rest_url: str,
        delegations_api_url: str,
        timeout: float = 3.0,
        adapter: Optional[TelemetryAdapter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._chain_url = chain_rest_url.rstrip("/")
        self._delegations_url = delegations_api_url.rstrip("/")
        self._adapter = adapter or CosmosValidatorAdapter()
        self._client = client or httpx.AsyncClient(timeout=timeout)

    # ── Public API ───────────────────────────────────────────────────────

    async def fetch_validator(self, address: str) -> ValidatorTelemetry:
        url = f"{self._chain_url}/cosmos/staking/v1beta1/validators/{address}"
        data = await self._get_json(url, target=address)
        raw = data.get("validator")
        if not isinstance(raw, dict):
            raise TelemetryUnavailable(address, "response has no 'validator' object")
        return self._adapt(raw, target=address)

    async def fetch_validators(self, limit: int = 100) -> list[ValidatorTelemetry]:
        url = f"{self._chain_url}/cosmos/staking/v1beta1/validators"
        data = await self._get_json(url, target="validators", params={"pagination.limit": str(limit)})
        raw_list = data.get("validators")
        if not isinstance(raw_list, list):
            raise TelemetryUnavailable("validators", "response has no 'validators' list")

        validators: list[ValidatorTelemetry] = []
        for raw in raw_list:
            if not isinstance(raw, dict) or not self._adapter.can_handle(raw):
                continue
            try:
                validators.append(self._adapter.adapt(raw))
            except ValueError as exc:
                logger.warning("Skipping malformed validator record: %s", exc)

        # Rank by bonded tokens, highest first
        ranked = sorted(validators, key=lambda v: v.tokens, reverse=True)
        return [
            v.model_copy(update={"voting_power_rank": rank})
            for rank, v in enumerate(ranked, start=1)
        ]

    async def fetch_delegations(self, user_address: str) -> list[Delegation]:
        url = f"{self._delegations_url}/accounts/{user_address}/delegations"
        data = await self._get_json(url, target=user_address)
        raw_list = data.get("delegations")
        if not isinstance(raw_list, list):
            raise TelemetryUnavailable(user_address, "response has no 'delegations' list")

        delegations: list[Delegation] = []
        for item in raw_list:
            if not isinstance(item, dict) or not item.get("validator_address"):
                continue
            validator = item.get("validator") or {}
            name = (validator.get("description") or {}).get("moniker") or item["validator_address"]
            delegations.append(Delegation(
                validator_address=item["validator_address"],
                validator_name=name,
                shares=str(item.get("shares", "0")),
            ))
        return delegations

    async def close(self) -> None:
        await self._client.aclose()

    # ── Internals ────────────────────────────────────────────────────────

    async def _get_json(
        self, url: str, target: str, params: Optional[dict[str, str]] = None
    ) -> dict[str, Any]:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise TelemetryUnavailable(target, f"{type(exc).__name__}: {exc}") from exc

        if response.status_code >= 400:
            raise TelemetryUnavailable(target, f"HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise TelemetryUnavailable(target, "response is not JSON") from exc
        if not isinstance(data, dict):
            raise TelemetryUnavailable(target, "response is not a JSON object")
        return data

    def _adapt(self, raw: dict[str, Any], target: str) -> ValidatorTelemetry:
        try:
            return self._adapter.adapt(raw)
        except ValueError as exc:
            raise TelemetryUnavailable(target, str(exc)) from exc
