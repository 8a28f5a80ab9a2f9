"""
Example demonstrating signal generation and decision validation.

This script shows how to:
1. Build hourly OHLCV candles
2. Configure the signal engine
3. Run signals, near-misses and trend scoring
4. Analyze how the signals played out
"""

import math

import pandas as pd

from signalscope.backtest import analyze_decisions
from signalscope.data.candles import INTERVAL_MS
from signalscope.strategy.signal_engine import SignalEngine


def generate_sample_data(hours: int = 24 * 30) -> pd.DataFrame:
    """
    Generate sample OHLCV candles for demonstration.

    In production, load actual candles with signalscope.data.candles.load_candles_csv().
    """
    start_ms = 1_704_067_200_000  # 2024-01-01 00:00 UTC
    interval_ms = INTERVAL_MS["1h"]
    data = []

    base_price = 50000.0
    for i in range(hours):
        open_time = start_ms + i * interval_ms
        # Slow uptrend with a daily swing and a weekly pullback
        trend = i * 15
        swing = 600 * math.sin(i / 24 * 2 * math.pi)
        pullback = -1500 * math.sin(i / (24 * 7) * 2 * math.pi) ** 2
        price = base_price + trend + swing + pullback

        data.append({
            "open_time": open_time,
            "open": price - 20,
            "high": price + 100,
            "low": price - 100,
            "close": price,
            "volume": 1000 + (i % 24) * 50,
            "close_time": open_time + interval_ms - 1,
        })

    return pd.DataFrame(data)


def main():
    """Run validation example."""

    # 1. Configure strategy
    engine = SignalEngine(
        long_rsi_max=45.0,  # LONG needs RSI at or below
        short_rsi_min=55.0,  # SHORT needs RSI at or above
        ema_tolerance=0.005,  # 0.5% band around EMA50
        validation_horizon=5,  # Score each call 5 bars later
    )

    # 2. Load data
    print("Loading candles...")
    candles = generate_sample_data()
    print(f"Loaded {len(candles)} candles")

    # 3. Run the engine
    result = engine.run(candles)
    analytics = analyze_decisions(result.validations, result.signals, interval_ms=INTERVAL_MS["1h"])

    # 4. Trend
    details = result.trend_details
    print("\n" + "=" * 60)
    print(f"Trend: {details.direction.value} (score {details.score:+d}, confidence {details.confidence}%)")
    for factor in details.factors:
        print(f"  {factor.label:<16s} {factor.contribution:+d}  {factor.detail}")
    print("=" * 60)

    # 5. Signals and their validation
    print(f"\nSignals: {len(result.signals)} primary, {len(result.fast_signals)} fast")
    print("-" * 60)
    for validation in result.validations[:5]:
        change = validation.direction_change_pct
        change_text = f"{change:+.2f}%" if change is not None else "n/a"
        print(f"  {validation.signal_type.value:<5s} @ {validation.entry_price:,.2f} -> {change_text} {validation.outcome.value}")

    if len(result.validations) > 5:
        print(f"\n... and {len(result.validations) - 5} more decisions")

    # 6. Health
    if analytics.health:
        health = analytics.health
        print("\nStrategy Health:")
        print("-" * 60)
        print(f"  Expectancy:   {health.expectancy:+.2f}%")
        print(f"  Max drawdown: {health.max_drawdown:.2f}%")
        print(f"  Streaks:      {health.best_win_streak} wins / {health.best_loss_streak} losses")

    # 7. Near-misses
    print(f"\nNear-misses: {len(result.diagnostics.near_misses)}")
    for near_miss in result.diagnostics.near_misses[-3:]:
        print(f"  {near_miss.bias.value:<5s} missing {near_miss.missing[0]}")


if __name__ == "__main__":
    main()
