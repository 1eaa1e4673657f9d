"""Currency conversion utilities.

Internal ledger unit: paise (smallest INR unit, 100 paise = ₹1).
Order totals are carried in rupees as ``Decimal`` with two places; invoices,
payments and gateway amounts are carried in integer paise.

Conversion chain
----------------
Rupees × 100 → Paise
Paise  ÷ 100 → Rupees
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

# ─── constants ───────────────────────────────────────────────────────────────

PAISE_PER_RUPEE: int = 100
TWO_PLACES = Decimal("0.01")

Number = Union[int, float, str, Decimal]


# ─── conversion helpers ───────────────────────────────────────────────────────


def to_decimal(value: Number | None) -> Decimal:
    """Coerce a loosely-typed number into a Decimal. ``None`` becomes 0."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise along
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def quantize_rupees(value: Number | None) -> Decimal:
    """Round to two decimal places, half-up."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def rupees_to_paise(rupees: Number | None) -> int:
    """Convert rupees to paise (round half-up). ₹1 = 100 paise."""
    paise = to_decimal(rupees) * PAISE_PER_RUPEE
    return int(paise.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def paise_to_rupees(paise: int) -> Decimal:
    """Convert paise to rupees. 100 paise = ₹1."""
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(TWO_PLACES)


def format_inr(paise: int) -> str:
    """Render paise as a display string, e.g. 123456 -> 'Rs. 1,234.56'."""
    rupees = paise_to_rupees(paise)
    sign = "-" if rupees < 0 else ""
    return f"{sign}Rs. {abs(rupees):,.2f}"
