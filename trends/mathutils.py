"""
Small numeric helpers shared by scoring and forecasting code.
"""

import math
from typing import Iterable, Sequence


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from zero towards +inf, the way score bands expect."""
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; NaN for an empty sequence."""
    if not values:
        return float("nan")
    return sum(values) / len(values)


def std(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    m = sum(values) / len(values)
    return math.sqrt(sum((v - m) ** 2 for v in values) / len(values))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """std / mean, 0 when the mean is not positive."""
    if not values:
        return 0.0
    m = sum(values) / len(values)
    if m <= 0:
        return 0.0
    return std(values) / m


def to_number(value) -> float:
    """Coerce a series cell to float; missing or unparsable cells become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def finite(values: Iterable[float]) -> list:
    return [v for v in values if isinstance(v, (int, float)) and math.isfinite(v)]
