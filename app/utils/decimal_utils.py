"""Money arithmetic helpers"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from typing import Iterable, Union

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def round_decimal(value: Decimal, decimal_places: int = 2) -> Decimal:
    """
    Round a decimal value to specified decimal places.

    Args:
        value: Decimal value to round
        decimal_places: Number of decimal places (default 2)

    Returns:
        Rounded decimal value
    """
    quantize_value = Decimal(10) ** -decimal_places
    return value.quantize(quantize_value, rounding=ROUND_HALF_UP)


def fraction_to_decimal(value: Fraction, decimal_places: int = 2) -> Decimal:
    """Convert an exact amount to a rounded Decimal for responses"""
    return round_decimal(Decimal(value.numerator) / Decimal(value.denominator), decimal_places)


def ceil_amount(value: Union[Fraction, int]) -> int:
    """Round an amount up to the whole currency unit (display rounding)"""
    return math.ceil(value)


def sum_fractions(values: Iterable[Fraction]) -> Fraction:
    """Exact sum of amounts"""
    return sum(values, Fraction(0))


def parse_cost(raw: Union[int, str, None]) -> int:
    """
    Parse a cost the way a spreadsheet cell input does.

    Leading integer digits are taken ("12abc" -> 12, "3.9" -> 3); anything
    unparsable becomes 0. Costs are non-negative so negatives clamp to 0.
    """
    if isinstance(raw, bool) or raw is None:
        return 0
    if isinstance(raw, int):
        return max(raw, 0)
    match = _LEADING_INT.match(str(raw))
    if not match:
        return 0
    try:
        value = int(match.group(1))
    except ValueError:
        # Past the interpreter's int string limit
        return 0
    return max(value, 0)
