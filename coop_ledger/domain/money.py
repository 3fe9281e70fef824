"""Fixed-point money helpers

Amounts travel through the system as integer cents. Conversion to and from
``Decimal`` happens only at the boundary (command DTOs, response DTOs, notes).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")


def to_cents(value: Union[Decimal, int, str]) -> int:
    """Convert a currency amount to integer cents, rounding half-up."""
    amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def round_cents(value: Decimal) -> int:
    """Round a fractional cents value to whole cents, half-up."""
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def format_cents(cents: int) -> str:
    return f"{from_cents(cents):.2f}"
