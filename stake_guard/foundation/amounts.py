"""Token amount conversion and display formatting."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

_NUMERIC = re.compile(r"[^\d.]")


def from_base_units(raw: str | int, decimals: int) -> Decimal:
    """Convert an integer base-unit amount (e.g. usei) to whole tokens."""
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return Decimal(0)
    return value.scaleb(-decimals)


def format_amount(amount: Decimal | float | int, symbol: str) -> str:
    """Thousands-separated display string, at most three decimals."""
    value = Decimal(str(amount)).quantize(Decimal("0.001"))
    if value == value.to_integral_value():
        text = f"{int(value):,}"
    else:
        text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{text} {symbol}"


def parse_amount(display: str) -> Decimal:
    """Recover the numeric part of a display string; unparseable → 0."""
    digits = _NUMERIC.sub("", display or "")
    try:
        return Decimal(digits) if digits else Decimal(0)
    except InvalidOperation:
        return Decimal(0)
