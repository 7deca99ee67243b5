"""
Module: billing_kernel.db.types
Responsibility: Precision and rounding of stored monetary values.  Every
    model column holding money is Numeric(18, 2); this module owns the
    matching rounding so services never quantize on their own.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for stored
      monetary values.
    - No floats anywhere in the billing kernel.  All monetary amounts use
      Decimal with explicit precision.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    This is the ONLY sanctioned rounding function for monetary values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)
