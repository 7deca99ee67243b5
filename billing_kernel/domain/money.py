"""
Money -- integer-cent conversion and summation.

Responsibility:
    Converts between decimal currency amounts and integer minor units, prices
    a number of billable days against a monthly rate, and sums amounts
    without drift.  Every intermediate computation runs on ``int`` cents;
    Decimal appears only at the edges.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - No floats: every entry point rejects ``float`` with TypeError.
    - ROUND_HALF_UP everywhere, via the same quantize step.
    - amount_for_days_cents(30, r) == r for every rate r.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from billing_kernel.db.types import round_money

BILLING_MONTH_DAYS = 30

_CENTS_PER_UNIT = 100


def _require_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, float):
        raise TypeError(
            "Float amounts are not accepted; pass Decimal or str instead"
        )
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def to_cents(amount: Decimal | int | str) -> int:
    """
    Convert a major-unit amount to integer cents (ROUND_HALF_UP).

    Example:
        to_cents(Decimal("37.70")) -> 3770
    """
    value = _require_decimal(amount) * _CENTS_PER_UNIT
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """
    Convert integer cents to a Decimal with exactly two places.

    Example:
        from_cents(1381) -> Decimal("13.81")
    """
    if not isinstance(cents, int) or isinstance(cents, bool):
        raise TypeError(f"Cents must be int, got {type(cents).__name__}")
    return round_money(Decimal(cents) / _CENTS_PER_UNIT)


def amount_for_days_cents(billable_days: int, monthly_rate_cents: int) -> int:
    """
    Price ``billable_days`` against a monthly rate expressed in cents.

    The per-day rate is ``monthly_rate / 30``; the product is rounded once,
    so a full month bills exactly the monthly rate.

    Example:
        amount_for_days_cents(11, 3770) -> 1382
    """
    if billable_days < 0:
        raise ValueError(f"billable_days must be >= 0, got {billable_days}")
    raw = Decimal(monthly_rate_cents) * billable_days / BILLING_MONTH_DAYS
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def sum_cents(amounts: Iterable[int]) -> int:
    """Sum integer cent amounts."""
    total = 0
    for cents in amounts:
        total += cents
    return total


def format_cents(cents: int, symbol: str = "€") -> str:
    """Format cents for operator output, e.g. ``1381 -> "13.81 €"``."""
    return f"{from_cents(cents)} {symbol}"
