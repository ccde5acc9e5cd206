"""Decimal helpers for money and quantity arithmetic."""

from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation
from typing import Iterable, Optional

from Config.constants_core import CURRENCY_SYMBOL, MONEY_QUANT


def safe_decimal(value, default: str = "0") -> Decimal:
    """Convert to Decimal via str() so floats keep their printed value."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal(default)
    try:
        return Decimal(str(value))
    except (TypeError, ValueError, InvalidOperation):
        return Decimal(default)


def to_decimal_strict(value, field: str) -> Decimal:
    """Like safe_decimal but refuses unparsable input."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (TypeError, ValueError, InvalidOperation):
            raise ValueError(f"{field} must be numeric, got {value!r}")
    if not result.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    return result


def round_with_bankers(value, quant: Decimal = MONEY_QUANT) -> Decimal:
    """Round half-to-even at the given quantum."""
    return safe_decimal(value).quantize(quant, rounding=ROUND_HALF_EVEN)


def quantize_money(value) -> Decimal:
    return round_with_bankers(value, MONEY_QUANT)


def sum_money(values: Iterable[Optional[Decimal]]) -> Decimal:
    total = Decimal("0")
    for v in values:
        if v is not None:
            total += safe_decimal(v)
    return total


def format_money(value, symbol: str = CURRENCY_SYMBOL) -> str:
    return f"{symbol}{quantize_money(value):.2f}"
