"""
Fixed-point money helpers.

All engine arithmetic happens on integer minor units (cents). Decimal is
only used at the boundary: parsing what callers hand in and formatting
what goes back out.

Floats are accepted for convenience and converted through their shortest
repr, so 0.1 + 0.2 parses as 0.30. After that first parse nothing is
rounded again except where a proportional split has to be.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence, Union

from smartsplit.engine.errors import ValidationError

Amount = Union[Decimal, int, float, str]

CENTS = 100
_CENT = Decimal("0.01")
_ONE = Decimal("1")
_DEFAULT_TOLERANCE = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
    "CNY": "¥",
    "AUD": "A$",
    "CAD": "C$",
}


def to_decimal(value: Amount) -> Decimal:
    """Parse a decimal-like value, rejecting NaN, infinities and booleans."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not parsed.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return parsed


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_minor(value: Amount) -> int:
    """
    Convert a currency amount to cents.

    Integers are whole currency units: to_minor(100) == 10000.
    """
    return round_half_up(to_decimal(value) * CENTS)


def from_minor(minor: int) -> Decimal:
    """Convert cents back to a two-place Decimal."""
    return (Decimal(minor) / CENTS).quantize(_CENT)


def quantize(value: Amount) -> Decimal:
    return from_minor(to_minor(value))


def add(*values: Amount) -> Decimal:
    return from_minor(sum(to_minor(v) for v in values))


def subtract(a: Amount, b: Amount) -> Decimal:
    return from_minor(to_minor(a) - to_minor(b))


def total(values: Iterable[Amount]) -> Decimal:
    return from_minor(sum(to_minor(v) for v in values))


def split_evenly(total_minor: int, count: int) -> list[int]:
    """
    Divide cents into count parts.

    base = floor(total / count); the first (total - base * count) parts
    receive one extra cent, in order.
    """
    if count <= 0:
        raise ValidationError("At least one participant is required", field="participants")
    base, remainder = divmod(total_minor, count)
    return [base + 1 if i < remainder else base for i in range(count)]


def allocate_proportionally(
    total_minor: int,
    weights: Sequence[Amount],
    denominator: Optional[Amount] = None,
) -> list[int]:
    """
    Distribute cents across weights so the parts sum exactly to total_minor.

    Each part is round_half_up(total * weight / denominator); the denominator
    defaults to the sum of the weights. Whatever rounding leaves over (or
    overshoots) is absorbed by the last part.
    """
    if not weights:
        raise ValidationError("At least one weight is required")

    parsed = [to_decimal(w) for w in weights]
    if any(w < 0 for w in parsed):
        raise ValidationError("Weights cannot be negative")

    denom = sum(parsed, Decimal(0)) if denominator is None else to_decimal(denominator)
    if denom == 0:
        raise ValidationError("Weights cannot sum to zero")

    amounts = [round_half_up(Decimal(total_minor) * w / denom) for w in parsed]
    amounts[-1] += total_minor - sum(amounts)

    # a zero-weight last part cannot absorb an overshoot; take it from the largest parts
    shortfall = -amounts[-1] if amounts[-1] < 0 else 0
    if shortfall:
        amounts[-1] = 0
        for i in sorted(range(len(amounts)), key=lambda k: -amounts[k]):
            if shortfall == 0:
                break
            amounts[i] -= 1
            shortfall -= 1
    return amounts


def is_zero(value: Amount, tolerance: Amount = _DEFAULT_TOLERANCE) -> bool:
    """True when value is within tolerance of zero (inclusive)."""
    return abs(to_decimal(value)) <= to_decimal(tolerance)


def compare(a: Amount, b: Amount, tolerance: Amount = _DEFAULT_TOLERANCE) -> int:
    """
    Three-way compare with a tolerance for upstream float noise.

    Returns 0 when |a - b| <= tolerance, otherwise -1 or 1.
    """
    diff = to_decimal(a) - to_decimal(b)
    if abs(diff) <= to_decimal(tolerance):
        return 0
    return 1 if diff > 0 else -1


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency.upper(), currency.upper())


def format_currency(amount: Amount, currency: str = "USD") -> str:
    """
    Format an amount for display, e.g. -$1,234.50.

    Unknown currency codes are used as a prefix: "XYZ 10.00".
    """
    value = quantize(amount)
    code = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    formatted = f"{abs(value):,.2f}"
    return f"-{symbol}{formatted}" if value < 0 else f"{symbol}{formatted}"
