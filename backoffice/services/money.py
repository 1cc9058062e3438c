# backoffice/services/money.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable

# ────────────────────────────────────────────────────────────────────────────────
# Global money settings
# ────────────────────────────────────────────────────────────────────────────────

_TWO_DP = Decimal("0.01")
ZERO = Decimal("0")


def to_dec(x: Any) -> Decimal:
    """Convert value to Decimal reliably (avoids float binary artifacts)."""
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x if x is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def round_money(x: Any) -> Decimal:
    """Decimal rounded to 2dp using half-up (money style)."""
    return to_dec(x).quantize(_TWO_DP, rounding=ROUND_HALF_UP)


def money(x: Any) -> float:
    """Return a float rounded to 2dp using half-up, for JSON responses."""
    return float(round_money(x))


def dec_sum(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for v in values:
        total += to_dec(v)
    return total


def percent(part: Any, whole: Any) -> Decimal:
    """part / whole * 100; 0 when whole is not positive."""
    w = to_dec(whole)
    if w <= 0:
        return ZERO
    return to_dec(part) / w * Decimal("100")
