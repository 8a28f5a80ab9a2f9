"""
Exponential Moving Average (EMA) indicator.

EMA gives more weight to recent prices, making it more responsive than SMA.
The engine uses four of them: EMA50/EMA200 for the primary trend and
EMA9/EMA21 for the fast-lane crossover.

Algorithm:
    seed   = mean(price[0 .. period-1])          placed at index period-1
    EMA[i] = price[i] * k + EMA[i-1] * (1 - k)   for i >= period
    where k = 2 / (period + 1)

    Unlike pandas' ewm(adjust=False), which seeds with the first price, the
    first value here is the simple average of the first `period` prices.
    Bars before index period-1 are NaN (not warmed up).

    A constant window seeds with the price itself rather than its computed
    mean, so a flat series yields an EMA exactly equal to the price for every
    period (ewm leaves the value untouched while price == EMA).

Crossovers:
    detect_crossovers() compares a fast and a slow EMA bar-to-bar. A bar is a
    bullish cross when fast <= slow on the previous bar and fast > slow now
    (inverse for bearish). Bars where either EMA is NaN never cross.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd


@dataclass
class CrossoverResult:
    """Crossover flags for a fast/slow EMA pair."""

    cross_up: pd.Series  # Boolean: fast crossed above slow on this bar
    cross_down: pd.Series  # Boolean: fast crossed below slow on this bar


def calculate_ema(
    prices: pd.Series,
    period: int,
) -> pd.Series:
    """
    Calculate an SMA-seeded EMA.

    Args:
        prices: Series of closing prices
        period: EMA period

    Returns:
        EMA series aligned to prices, NaN before index period-1.
        Empty series for empty input.

    Raises:
        ValueError: If period is not positive
    """
    if period <= 0:
        raise ValueError(f"EMA period must be positive, got {period}")

    prices = prices.astype(float)
    if prices.empty:
        return pd.Series(dtype=float)

    result = pd.Series(np.nan, index=prices.index, dtype=float)
    if len(prices) < period:
        return result

    # Replace the first warm value with the SMA seed, then let ewm apply the
    # standard recurrence from there on.
    seeded = prices.iloc[period - 1:].copy()
    window = prices.iloc[:period]
    first = window.iloc[0]
    seeded.iloc[0] = first if (window == first).all() else window.mean()
    result.iloc[period - 1:] = seeded.ewm(span=period, adjust=False).mean().to_numpy()
    return result


def detect_crossovers(
    ema_fast: pd.Series,
    ema_slow: pd.Series,
) -> CrossoverResult:
    """
    Detect bar-to-bar crossovers between two EMAs.

    Args:
        ema_fast: Fast EMA series
        ema_slow: Slow EMA series (same index as ema_fast)

    Returns:
        CrossoverResult with boolean series
    """
    fast_prev = ema_fast.shift(1)
    slow_prev = ema_slow.shift(1)

    # NaN comparisons are False, so bars without both EMAs on both sides drop out
    cross_up = (fast_prev <= slow_prev) & (ema_fast > ema_slow)
    cross_down = (fast_prev >= slow_prev) & (ema_fast < ema_slow)

    return CrossoverResult(
        cross_up=cross_up.fillna(False).astype(bool),
        cross_down=cross_down.fillna(False).astype(bool),
    )
