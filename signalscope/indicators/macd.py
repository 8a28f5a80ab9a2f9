"""
Moving Average Convergence Divergence (MACD) indicator.

MACD shows the relationship between two exponential moving averages and is
used here for momentum confirmation in both the primary and fast-lane rule
sets, and as one of the trend-scoring factors.

Algorithm:
    MACD Line   = EMA(fast) - EMA(slow)            NaN until the slow EMA warms up
    Signal Line = EMA(MACD Line with NaN -> 0, signal)
    Histogram   = MACD Line - (Signal Line, NaN -> 0)

    Both EMAs use the SMA-seeded EMA from signalscope.indicators.ema. Because the
    signal line is computed over a zero-filled MACD line, its seed averages
    zeros plus early MACD values. It converges after a few dozen bars, well
    inside the 200-bar warm-up of the signal engine.

Parameters:
    - fast_period: 12 (standard)
    - slow_period: 26 (standard)
    - signal_period: 9 (standard)
"""

from dataclasses import dataclass

import pandas as pd

from signalscope.indicators.ema import calculate_ema


@dataclass
class MACDResult:
    """MACD calculation result."""

    macd_line: pd.Series
    signal_line: pd.Series
    histogram: pd.Series


def calculate_macd(
    prices: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    """
    Calculate MACD indicator.

    Args:
        prices: Series of closing prices
        fast_period: Fast EMA period (default: 12)
        slow_period: Slow EMA period (default: 26)
        signal_period: Signal line EMA period (default: 9)

    Returns:
        MACDResult with macd_line, signal_line, and histogram

    Raises:
        ValueError: If slow_period is not greater than fast_period
    """
    if slow_period <= fast_period:
        raise ValueError(
            f"slow_period ({slow_period}) must be greater than fast_period ({fast_period})"
        )

    prices = prices.astype(float)

    ema_fast = calculate_ema(prices, fast_period)
    ema_slow = calculate_ema(prices, slow_period)

    # NaN wherever either EMA is still warming up
    macd_line = ema_fast - ema_slow

    signal_line = calculate_ema(macd_line.fillna(0.0), signal_period)

    histogram = macd_line - signal_line.fillna(0.0)

    return MACDResult(
        macd_line=macd_line,
        signal_line=signal_line,
        histogram=histogram,
    )
