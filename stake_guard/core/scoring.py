"""IncidentAnalyzer + RiskScorer — deterministic validator risk scoring.

Design principles:
    1. Pure functions of telemetry (plus an explicit ``now``): no I/O,
       no randomness, no state mutation.
    2. Rules are applied in a fixed order and each contributes
       independently; several may fire for one validator.
    3. The constants below are product-tuned heuristics and are kept
       literally for behaviour compatibility.

Rules (in order):
    jailed                      → critical, −40
    status ≠ bonded             → high,     −25
    commission > 10 %           → medium,   −10
    commission > 15 %           → high,     −20   (stacks with the above)
    max commission > 20 %       → low,       −5

Score:
    score = max(10, 85 + Σ deltas)

Classification:
    score ≥ 80 → green;  60 ≤ score < 80 → yellow;  score < 60 → red

Fallback:
    When telemetry cannot be fetched, a deterministic assessment is
    derived from a 32-bit string hash of the validator name
    (score = |h| mod 70 + 25).  It carries one PERFORMANCE incident whose
    delta is ``score − 85`` so the score identity above still holds.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from stake_guard.domain.assessment import Incident, PerformanceMetrics, RiskAssessment
from stake_guard.domain.enums import BondStatus, IncidentType, RiskLevel, Severity
from stake_guard.domain.telemetry import ValidatorTelemetry
from stake_guard.foundation.amounts import format_amount, from_base_units
from stake_guard.foundation.clock import Clock, utc_now

BASE_SCORE = 85
SCORE_FLOOR = 10
GREEN_THRESHOLD = 80
YELLOW_THRESHOLD = 60

JAILED_DELTA = -40
INACTIVE_DELTA = -25
HIGH_COMMISSION_DELTA = -10
EXCESSIVE_COMMISSION_DELTA = -20
HIGH_MAX_RATE_DELTA = -5

HIGH_COMMISSION_RATE = 0.10
EXCESSIVE_COMMISSION_RATE = 0.15
HIGH_MAX_RATE = 0.20

_FALLBACK_SCORE_SPAN = 70
_FALLBACK_SCORE_OFFSET = 25


def classify_score(score: int) -> RiskLevel:
    """Risk level is a pure function of score."""
    if score >= GREEN_THRESHOLD:
        return RiskLevel.GREEN
    if score >= YELLOW_THRESHOLD:
        return RiskLevel.YELLOW
    return RiskLevel.RED


def name_hash(name: str) -> int:
    """Signed 32-bit ``h = h * 31 + unit`` hash over UTF-16 code units."""
    encoded = name.encode("utf-16-le")
    h = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


class RiskScorer:
    """Aggregates incident deltas into a floored score and classifies it."""

    def __init__(self, base: int = BASE_SCORE, floor: int = SCORE_FLOOR) -> None:
        self._base = base
        self._floor = floor

    @property
    def base(self) -> int:
        return self._base

    def score(self, incidents: list[Incident]) -> int:
        return max(self._floor, self._base + sum(i.score_delta for i in incidents))

    @staticmethod
    def classify(score: int) -> RiskLevel:
        return classify_score(score)


class IncidentAnalyzer:
    """Derives incidents from telemetry and produces a RiskAssessment.

    Stateless apart from configuration; ``now`` may be passed explicitly
    for reproducible incident timestamps.
    """

    def __init__(
        self,
        scorer: RiskScorer | None = None,
        token_symbol: str = "SEI",
        token_decimals: int = 6,
        clock: Clock = utc_now,
    ) -> None:
        self._scorer = scorer or RiskScorer()
        self._symbol = token_symbol
        self._decimals = token_decimals
        self._clock = clock

    # ── Public API ───────────────────────────────────────────────────────

    def analyze(self, telemetry: ValidatorTelemetry, now: Optional[datetime] = None) -> RiskAssessment:
        now = now or self._clock()
        incidents = self.detect(telemetry, now)
        score = self._scorer.score(incidents)
        return RiskAssessment(
            validator_address=telemetry.address,
            validator_name=telemetry.name,
            current_score=score,
            risk_level=self._scorer.classify(score),
            incidents=incidents,
            performance=self.performance(telemetry),
            status=telemetry.status,
            jailed=telemetry.jailed,
            assessed_at=now,
        )

    def detect(self, telemetry: ValidatorTelemetry, now: datetime) -> list[Incident]:
        """Apply the scoring rules in order and return the incidents that fired."""
        incidents: list[Incident] = []
        rate = telemetry.commission_rate
        max_rate = telemetry.commission_max_rate
        commission_time = telemetry.commission_updated_at or (now - timedelta(days=7))

        # ── Jailing ──────────────────────────────────────────────────────
        if telemetry.jailed:
            incidents.append(Incident(
                type=IncidentType.JAILED,
                title="Validator jailed",
                description=(
                    "Validator was jailed due to poor performance or misbehavior. "
                    f"Current status: {telemetry.status.value}"
                ),
                severity=Severity.CRITICAL,
                timestamp=telemetry.unbonding_time or (now - timedelta(days=1)),
                score_delta=JAILED_DELTA,
            ))

        # ── Active set membership ────────────────────────────────────────
        if telemetry.status != BondStatus.BONDED:
            incidents.append(Incident(
                type=IncidentType.INACTIVE,
                title="Validator inactive",
                description=(
                    "Validator is not in the active validator set. "
                    f"Status: {telemetry.status.value}"
                ),
                severity=Severity.HIGH,
                timestamp=now - timedelta(days=2),
                score_delta=INACTIVE_DELTA,
            ))

        # ── Commission ───────────────────────────────────────────────────
        if rate > HIGH_COMMISSION_RATE:
            incidents.append(Incident(
                type=IncidentType.HIGH_COMMISSION,
                title="High commission rate",
                description=f"Commission rate is {rate * 100:.1f}%, significantly above network average",
                severity=Severity.MEDIUM,
                timestamp=commission_time,
                score_delta=HIGH_COMMISSION_DELTA,
            ))

        if rate > EXCESSIVE_COMMISSION_RATE:
            incidents.append(Incident(
                type=IncidentType.EXCESSIVE_COMMISSION,
                title="Excessive commission rate",
                description=(
                    f"Commission rate of {rate * 100:.1f}% is extremely high "
                    "and reduces delegator returns"
                ),
                severity=Severity.HIGH,
                timestamp=commission_time,
                score_delta=EXCESSIVE_COMMISSION_DELTA,
            ))

        if max_rate > HIGH_MAX_RATE:
            incidents.append(Incident(
                type=IncidentType.HIGH_MAX_COMMISSION_RISK,
                title="High maximum commission",
                description=(
                    f"Maximum commission rate is set to {max_rate * 100:.1f}%, "
                    "allowing for significant future increases"
                ),
                severity=Severity.LOW,
                timestamp=commission_time,
                score_delta=HIGH_MAX_RATE_DELTA,
            ))

        return incidents

    def performance(self, telemetry: ValidatorTelemetry) -> PerformanceMetrics:
        voting_power = from_base_units(telemetry.tokens, self._decimals).to_integral_value()
        return PerformanceMetrics(
            uptime=telemetry.uptime,
            missed_blocks=telemetry.missed_blocks,
            commission_rate=round(telemetry.commission_rate * 100, 2),
            voting_power=format_amount(voting_power, self._symbol),
        )

    def fallback(self, address: str, name: str, now: Optional[datetime] = None) -> RiskAssessment:
        """Deterministic stand-in assessment used when telemetry is unavailable."""
        now = now or self._clock()
        h = abs(name_hash(name))
        score = h % _FALLBACK_SCORE_SPAN + _FALLBACK_SCORE_OFFSET
        delta = score - self._scorer.base

        incidents: list[Incident] = []
        if delta != 0:
            incidents.append(Incident(
                type=IncidentType.PERFORMANCE,
                title="Estimated performance",
                description=(
                    "Live chain data is unavailable; the score is a deterministic "
                    "estimate and should be re-checked once telemetry recovers"
                ),
                severity=_severity_for_delta(delta),
                timestamp=now,
                score_delta=delta,
            ))

        performance = PerformanceMetrics(
            uptime=round(90.0 + (h % 100) / 10.0, 1),
            missed_blocks=h % 50,
            commission_rate=float(5 + h % 10),
            voting_power=format_amount(500_000 + h % 500_000, self._symbol),
        )
        return RiskAssessment(
            validator_address=address,
            validator_name=name,
            current_score=self._scorer.score(incidents),
            risk_level=classify_score(score),
            incidents=incidents,
            performance=performance,
            status=BondStatus.BONDED,
            jailed=False,
            degraded=True,
            assessed_at=now,
        )


def _severity_for_delta(delta: int) -> Severity:
    if delta >= 0:
        return Severity.LOW
    if delta > INACTIVE_DELTA:
        return Severity.MEDIUM
    if delta > JAILED_DELTA:
        return Severity.HIGH
    return Severity.CRITICAL
