"""Small statistics helpers shared by every aggregation step.

Standard deviation is the population form (divide by n), matching how
the profile has always reported volatility and consistency.
"""

from __future__ import annotations

import math
import statistics
from typing import Iterable, Sequence


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return statistics.fmean(values)


def std_dev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return statistics.pstdev(values)


def variance(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return statistics.pvariance(values)


def coefficient_of_variation(values: Sequence[float]) -> float:
    """std / mean; 0 for empty input or a zero mean."""
    if not values:
        return 0.0
    avg = mean(values)
    if avg == 0:
        return 0.0
    return std_dev(values) / avg


def consistency(values: Sequence[float]) -> float:
    """0-100, where 100 means no variation at all (CV = 0)."""
    return max(0.0, 100.0 - coefficient_of_variation(values) * 100.0)


def normalize(value: float, low: float, high: float) -> float:
    """Linear min-max onto 0-100, clamped. A degenerate range is neutral."""
    if high == low:
        return 50.0
    return clamp((value - low) / (high - low) * 100.0, 0.0, 100.0)


def inverse_normalize(value: float, low: float, high: float) -> float:
    """Min-max where lower raw values are better."""
    if high == low:
        return 50.0
    return clamp((1.0 - (value - low) / (high - low)) * 100.0, 0.0, 100.0)


def upper_median(values: Iterable[float]) -> float:
    """Element at index n // 2 of the sorted values (0 when empty)."""
    ordered = sorted(values)
    if not ordered:
        return 0.0
    return ordered[len(ordered) // 2]


def round1(value: float) -> float:
    return round(value * 10) / 10


def sigmoid(x: float) -> float:
    x = clamp(x, -50.0, 50.0)
    return 1.0 / (1.0 + math.exp(-x))
