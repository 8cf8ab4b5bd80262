"""
Money Utilities - Safe Decimal operations for monetary values.

Every price, rate and total in the pipeline is a Decimal. Floats are
rejected outright instead of being coerced, so a binary rounding error can
never leak into a rollup.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from pos.errors import ValidationError

# Default precision for money operations (2 decimal places)
MONEY_PRECISION = Decimal("0.01")

# Rates (tax, discount fractions) keep four places
RATE_PRECISION = Decimal("0.0001")

ZERO = Decimal("0.00")

MoneyLike = Union[str, int, Decimal]


def to_decimal(value: Union[MoneyLike, None], field: str = "value") -> Decimal:
    """
    Convert a value to Decimal.

    Args:
        value: str, int or Decimal (None becomes zero)
        field: Field name used in the error message

    Returns:
        Decimal representation of the value

    Raises:
        ValidationError: if the value is a float, not numeric, or not finite
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be a decimal string, not {type(value).__name__}")
    else:
        try:
            result = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"{field} must be a decimal number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def round_money(value: MoneyLike) -> Decimal:
    """Round a monetary value to cents (half up)."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def to_rate(value: Union[MoneyLike, None], field: str = "rate") -> Decimal:
    """
    Parse a fraction in [0, 1] (discount or tax rate).

    Raises:
        ValidationError: if the value is outside [0, 1]
    """
    rate = to_decimal(value, field)
    if rate < 0 or rate > 1:
        raise ValidationError(f"{field} must be between 0 and 1")
    return rate


def format_money(value: MoneyLike) -> str:
    """Render a monetary value as a fixed two-decimal string."""
    return f"{round_money(value):.2f}"


def format_rate(value: MoneyLike) -> str:
    """Render a rate without trailing noise, e.g. 0.1 -> '0.10'."""
    rate = to_decimal(value)
    if rate == rate.quantize(MONEY_PRECISION):
        return f"{rate.quantize(MONEY_PRECISION):.2f}"
    return str(rate.normalize())


def money_sum(values) -> Decimal:
    """Exact sum of monetary values; the empty sum is 0.00."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return round_money(total)


def amounts_equal(a: MoneyLike, b: MoneyLike) -> bool:
    """Exact decimal equality (no epsilon). '22' equals '22.00'."""
    return to_decimal(a) == to_decimal(b)
