"""
Relative Strength Index (RSI) indicator.

RSI measures momentum by comparing the magnitude of recent gains to recent
losses. Values range from 0 to 100.

Algorithm:
    This implementation averages gains and losses over a rolling window of
    the last `period` price changes. It is NOT Wilder's smoothed average:

        gain[i]    = max(0, price[i] - price[i-1])
        loss[i]    = max(0, price[i-1] - price[i])
        avgGain[i] = mean(gain[i-period+1 .. i])
        avgLoss[i] = mean(loss[i-period+1 .. i])
        RS         = avgGain / avgLoss      (100 when avgLoss == 0)
        RSI        = 100 - 100 / (1 + RS)

    With RS fixed at 100 on a window without losses, RSI saturates at
    100 - 100/101 (~99.01) rather than 100.

Warm-up:
    The first value is at index `period`. Inputs with `period` or fewer
    prices produce an empty series.
"""

import pandas as pd

# Relative strength used when the window contains no losses
_RS_WITHOUT_LOSSES = 100.0


def calculate_rsi(
    prices: pd.Series,
    period: int = 14,
) -> pd.Series:
    """
    Calculate RSI using rolling-window average gains and losses.

    Args:
        prices: Series of closing prices
        period: RSI calculation period (default: 14)

    Returns:
        Series of RSI values (0-100) aligned to prices, NaN before index
        `period`. Empty series if len(prices) <= period.

    Raises:
        ValueError: If period is not positive
    """
    if period <= 0:
        raise ValueError(f"RSI period must be positive, got {period}")

    prices = prices.astype(float)
    if len(prices) <= period:
        return pd.Series(dtype=float)

    delta = prices.diff()
    gains = delta.clip(lower=0.0)
    losses = (-delta).clip(lower=0.0)

    # delta[0] is NaN, so the first complete window ends at index `period`
    avg_gains = gains.rolling(window=period, min_periods=period).mean()
    avg_losses = losses.rolling(window=period, min_periods=period).mean()

    rs = (avg_gains / avg_losses).where(avg_losses != 0, _RS_WITHOUT_LOSSES)
    rs = rs.where(avg_losses.notna())

    return 100 - (100 / (1 + rs))
