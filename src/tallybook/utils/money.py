"""Money rounding helpers.

Every monetary step rounds to cents with ROUND_HALF_UP, which for Decimal
means half away from zero (-0.005 becomes -0.01).
"""

from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
ZERO_TOLERANCE = Decimal("0.005")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    """Convert a value to Decimal without going through binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Decimal | int | str | float) -> Decimal:
    """Round to two decimal places, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def is_zero(value: Decimal) -> bool:
    """Return True if the amount is zero to the cent."""
    return abs(value) < ZERO_TOLERANCE


def format_rate(rate: Decimal) -> str:
    """Format a percentage without trailing zeros ("9.9750" -> "9.975")."""
    text = f"{rate:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
