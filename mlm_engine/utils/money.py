"""
Money helpers.

All amounts are ``Decimal``; persisted values are rounded to paise.
"""

from decimal import ROUND_HALF_UP, Decimal


CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert numbers from JSON payloads without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(amount: Decimal | int | float | str) -> Decimal:
    """Round to two decimal places, half up."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """``percent``% of ``amount``, rounded to paise."""
    return quantize(to_decimal(amount) * to_decimal(percent) / HUNDRED)


def calculate_fee(amount: Decimal, fee_type: str, value: Decimal) -> Decimal:
    """
    Fee for ``amount``: ``value`` percent, or a flat ``value``.

    Returns:
        Fee rounded to paise
    """
    if fee_type == "flat":
        return quantize(value)
    return percent_of(amount, value)
