"""Conversions between rupee decimals and integer paise."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_PAISE_PER_RUPEE = Decimal(100)


def to_decimal(value: Any) -> Decimal:
    """Coerce partner-supplied numbers (int, float, str, None) to Decimal.

    Floats go through ``str`` so that ``77.88`` stays ``77.88``.
    """
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def to_paise(value: Any) -> int:
    amount = to_decimal(value) * _PAISE_PER_RUPEE
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_paise(paise: int) -> Decimal:
    return (Decimal(paise) / _PAISE_PER_RUPEE).quantize(Decimal("0.01"))


def format_rupees(paise: int) -> str:
    return f"{from_paise(paise):.2f}"
