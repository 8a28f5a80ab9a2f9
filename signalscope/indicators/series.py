"""
Numeric helpers shared by the indicator consumers.

Indicator outputs are sparse: NaN marks a bar that is not warmed up, and
some indicators return an empty series when the input is too short. Both
cases mean "indicator not ready" to the consumers.
"""

import math
from typing import Optional

import pandas as pd


def value_at(series: pd.Series, index: int) -> float:
    """Return the value at a position, or NaN if it is out of range."""
    if index < 0 or index >= len(series):
        return math.nan
    return float(series.iloc[index])


def is_ready(value: Optional[float]) -> bool:
    """True if the value is a finite number."""
    return value is not None and math.isfinite(value)


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positives.

    Percentages are rounded this way (12.5 -> 13) instead of Python's
    banker's rounding (round(12.5) == 12).
    """
    return int(math.floor(value + 0.5))
