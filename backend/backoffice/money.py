# Overview: Decimal helpers for money values (INR, 2 decimal places).

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """
    Coerce an int/float/str/Decimal to Decimal.

    Floats go through str() so 0.1 stays 0.1. None becomes zero.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"{field} must be a number") from None


def quantize_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def money_str(value) -> str | None:
    """Serialize a money value for JSON (fixed 2 places)."""
    if value is None:
        return None
    return str(quantize_money(value))


def rate_str(value) -> str | None:
    """Serialize a percentage rate (e.g. "18.00", "9.00")."""
    if value is None:
        return None
    return str(to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP))
