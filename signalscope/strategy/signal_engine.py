"""
Rule-based signal engine.

Evaluates every bar after the EMA200 warm-up against two four-condition rule
sets and a fast crossover lane, then scores the trend on the latest bar and
validates the primary signals against the bars that followed them.

Primary rule sets:

    LONG                                  SHORT
    1. EMA50 > EMA200                     1. EMA50 < EMA200
    2. MACD bullish cross or momentum     2. MACD bearish cross or momentum
    3. RSI <= 45                          3. RSI >= 55
    4. Price >= EMA50 * 0.995             4. Price <= EMA50 * 1.005

    All four met    -> Signal
    Exactly 3 met   -> NearMiss listing the single missing condition
    2 or fewer met  -> nothing

    Both sides are evaluated on every bar. Opposite trend conditions keep them
    apart in practice, but nothing forces them to be exclusive.

MACD momentum:
    bullish cross   macd[i-1] <= signal[i-1] and macd[i] > signal[i]
    momentum up     hist[i] >= 0 and (hist[i] >= hist[i-1] or bullish cross)
    (mirrored for the bearish side)

Fast lane:
    EMA9 crossing EMA21 on this bar, MACD agreeing (momentum or histogram
    sign), and price on the right side of EMA9. Emits a fast signal with its
    own reason; no near-miss tracking.

The whole result is recomputed from scratch on every call. Near-misses are
kept in a bounded deque (oldest evicted first).
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

import numpy as np
import pandas as pd
import structlog

from signalscope.backtest.decision_validator import (
    DEFAULT_HORIZON,
    DecisionValidation,
    validate_decisions,
)
from signalscope.data.candles import CandleInput, candles_to_frame
from signalscope.indicators.ema import calculate_ema
from signalscope.indicators.macd import MACDResult, calculate_macd
from signalscope.indicators.rsi import calculate_rsi
from signalscope.strategy.signals import NearMiss, Signal, SignalType
from signalscope.strategy.trend_scorer import (
    TrendDetails,
    TrendDirection,
    TrendWeights,
    build_trend_details,
)

if TYPE_CHECKING:
    from config.settings import Settings

logger = structlog.get_logger(__name__)

LONG_REASON = "EMA trend + MACD momentum + RSI support + price > EMA50"
SHORT_REASON = "EMA trend + MACD momentum + RSI resistance + price < EMA50"
FAST_LONG_REASON = "EMA9 > EMA21 crossover with positive MACD momentum"
FAST_SHORT_REASON = "EMA9 < EMA21 crossover with negative MACD momentum"

# RSI used when the oscillator is not ready; fails both RSI conditions
_NEUTRAL_RSI = 50.0


@dataclass
class IndicatorSet:
    """All indicator series the engine reads, aligned to the candle index."""

    close: pd.Series
    trend_fast: pd.Series  # EMA50
    trend_slow: pd.Series  # EMA200
    lane_fast: pd.Series  # EMA9
    lane_slow: pd.Series  # EMA21
    rsi: pd.Series  # may be empty when there is not enough data
    macd: MACDResult


@dataclass(frozen=True)
class RuleEvaluation:
    """Partition of one rule set into satisfied and missing conditions."""

    bias: SignalType
    satisfied: tuple[str, ...]
    missing: tuple[str, ...]

    @property
    def is_signal(self) -> bool:
        return not self.missing

    @property
    def is_near_miss(self) -> bool:
        return len(self.missing) == 1


def evaluate_conditions(bias: SignalType, conditions: list[tuple[str, bool]]) -> RuleEvaluation:
    """Split labelled (label, ok) conditions into satisfied and missing."""
    return RuleEvaluation(
        bias=bias,
        satisfied=tuple(label for label, ok in conditions if ok),
        missing=tuple(label for label, ok in conditions if not ok),
    )


@dataclass
class StrategyDiagnostics:
    """Near-miss history and the last candle the engine saw."""

    near_misses: list[NearMiss] = field(default_factory=list)
    last_evaluated_candle: Optional[int] = None


@dataclass
class StrategyResult:
    """Complete output of one engine pass."""

    signals: list[Signal] = field(default_factory=list)
    fast_signals: list[Signal] = field(default_factory=list)
    diagnostics: StrategyDiagnostics = field(default_factory=StrategyDiagnostics)
    trend: TrendDirection = TrendDirection.NEUTRAL
    trend_details: TrendDetails = field(default_factory=TrendDetails)
    validations: list[DecisionValidation] = field(default_factory=list)


def _positional(series: pd.Series, length: int) -> np.ndarray:
    """Copy a series into a float array of `length`, NaN-padded past its end."""
    values = np.full(length, np.nan, dtype=float)
    source = series.to_numpy(dtype=float)[:length]
    values[:len(source)] = source
    return values


class SignalEngine:
    """
    Signal, near-miss, trend and validation pipeline over a candle batch.

    Stateless between calls: run() derives everything from its input, so two
    runs on identical candles return identical results.
    """

    def __init__(
        self,
        warmup_bars: int = 200,
        trend_fast_period: int = 50,
        trend_slow_period: int = 200,
        lane_fast_period: int = 9,
        lane_slow_period: int = 21,
        rsi_period: int = 14,
        macd_fast: int = 12,
        macd_slow: int = 26,
        macd_signal: int = 9,
        long_rsi_max: float = 45.0,
        short_rsi_min: float = 55.0,
        ema_tolerance: float = 0.005,
        near_miss_capacity: int = 100,
        validation_horizon: int = DEFAULT_HORIZON,
        trend_weights: Optional[TrendWeights] = None,
        trend_slope_lookback: int = 5,
        trend_rsi_bull: float = 55.0,
        trend_rsi_bear: float = 45.0,
    ):
        """
        Initialize signal engine.

        Args:
            warmup_bars: First bar index evaluated (default: 200, EMA200 warm-up)
            trend_fast_period / trend_slow_period: Trend EMAs (50 / 200)
            lane_fast_period / lane_slow_period: Fast-lane EMAs (9 / 21)
            rsi_period: RSI averaging window (default: 14)
            macd_fast / macd_slow / macd_signal: MACD periods (12 / 26 / 9)
            long_rsi_max: LONG needs RSI at or below this (default: 45)
            short_rsi_min: SHORT needs RSI at or above this (default: 55)
            ema_tolerance: Price may sit this fraction past EMA50 and still
                count as on the right side (default: 0.005 = 0.5%)
            near_miss_capacity: Near-misses retained, newest last (default: 100)
            validation_horizon: Lookahead bars for decision validation (default: 5)
            trend_weights: Trend factor weights (default: TrendWeights())
            trend_slope_lookback: Bars back for the EMA50 slope (default: 5)
            trend_rsi_bull / trend_rsi_bear: RSI bias thresholds for the
                trend score (55 / 45)

        Raises:
            ValueError: If warmup_bars or near_miss_capacity is not positive
        """
        if warmup_bars < 1:
            raise ValueError(f"warmup_bars must be at least 1, got {warmup_bars}")
        if near_miss_capacity < 1:
            raise ValueError(f"near_miss_capacity must be at least 1, got {near_miss_capacity}")

        self.warmup_bars = warmup_bars
        self.trend_fast_period = trend_fast_period
        self.trend_slow_period = trend_slow_period
        self.lane_fast_period = lane_fast_period
        self.lane_slow_period = lane_slow_period
        self.rsi_period = rsi_period
        self.macd_fast = macd_fast
        self.macd_slow = macd_slow
        self.macd_signal_period = macd_signal
        self.long_rsi_max = long_rsi_max
        self.short_rsi_min = short_rsi_min
        self.ema_tolerance = ema_tolerance
        self.near_miss_capacity = near_miss_capacity
        self.validation_horizon = validation_horizon
        self.trend_weights = trend_weights or TrendWeights()
        self.trend_slope_lookback = trend_slope_lookback
        self.trend_rsi_bull = trend_rsi_bull
        self.trend_rsi_bear = trend_rsi_bear

        fast = f"EMA{trend_fast_period}"
        slow = f"EMA{trend_slow_period}"
        tolerance = f"±{ema_tolerance * 100:g}%"
        self._fast_label = fast
        self._slow_label = slow
        self._long_labels = (
            f"{fast} above {slow}",
            "MACD bullish momentum",
            f"RSI <= {long_rsi_max:g}",
            f"Price above {fast} ({tolerance})",
        )
        self._short_labels = (
            f"{fast} below {slow}",
            "MACD bearish momentum",
            f"RSI >= {short_rsi_min:g}",
            f"Price below {fast} ({tolerance})",
        )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SignalEngine":
        """Build an engine from application settings."""
        return cls(
            warmup_bars=settings.warmup_bars,
            trend_fast_period=settings.trend_fast_period,
            trend_slow_period=settings.trend_slow_period,
            lane_fast_period=settings.fast_lane_fast_period,
            lane_slow_period=settings.fast_lane_slow_period,
            rsi_period=settings.rsi_period,
            macd_fast=settings.macd_fast,
            macd_slow=settings.macd_slow,
            macd_signal=settings.macd_signal,
            long_rsi_max=settings.long_rsi_max,
            short_rsi_min=settings.short_rsi_min,
            ema_tolerance=settings.ema_tolerance,
            near_miss_capacity=settings.near_miss_capacity,
            validation_horizon=settings.validation_horizon,
            trend_slope_lookback=settings.trend_slope_lookback,
            trend_rsi_bull=settings.trend_rsi_bull,
            trend_rsi_bear=settings.trend_rsi_bear,
        )

    def compute_indicators(self, frame: pd.DataFrame) -> IndicatorSet:
        """Calculate every indicator series over the closing prices."""
        close = frame["close"].astype(float)
        return IndicatorSet(
            close=close,
            trend_fast=calculate_ema(close, self.trend_fast_period),
            trend_slow=calculate_ema(close, self.trend_slow_period),
            lane_fast=calculate_ema(close, self.lane_fast_period),
            lane_slow=calculate_ema(close, self.lane_slow_period),
            rsi=calculate_rsi(close, self.rsi_period),
            macd=calculate_macd(close, self.macd_fast, self.macd_slow, self.macd_signal_period),
        )

    def build_trend(self, indicators: IndicatorSet) -> TrendDetails:
        """Score the trend on the latest bar."""
        return build_trend_details(
            close=indicators.close,
            ema_fast=indicators.trend_fast,
            ema_slow=indicators.trend_slow,
            macd_histogram=indicators.macd.histogram,
            rsi=indicators.rsi,
            weights=self.trend_weights,
            slope_lookback=self.trend_slope_lookback,
            rsi_bull=self.trend_rsi_bull,
            rsi_bear=self.trend_rsi_bear,
            fast_label=self._fast_label,
            slow_label=self._slow_label,
        )

    def run(
        self,
        candles: CandleInput,
        indicators: Optional[IndicatorSet] = None,
    ) -> StrategyResult:
        """
        Run the full pipeline over a candle batch.

        Args:
            candles: Chronological candles (DataFrame or Candle sequence)
            indicators: Precomputed indicators aligned to the candles
                (computed from the closes if not provided)

        Returns:
            StrategyResult; empty lists and a NEUTRAL trend for empty input
        """
        frame = candles_to_frame(candles)
        if frame.empty:
            return StrategyResult()

        if indicators is None:
            indicators = self.compute_indicators(frame)

        length = len(frame)
        close = _positional(indicators.close, length)
        close_times = frame["close_time"].to_numpy()
        trend_fast = _positional(indicators.trend_fast, length)
        trend_slow = _positional(indicators.trend_slow, length)
        lane_fast = _positional(indicators.lane_fast, length)
        lane_slow = _positional(indicators.lane_slow, length)
        rsi = _positional(indicators.rsi, length)
        macd_line = _positional(indicators.macd.macd_line, length)
        signal_line = _positional(indicators.macd.signal_line, length)
        histogram = _positional(indicators.macd.histogram, length)

        signals: list[Signal] = []
        fast_signals: list[Signal] = []
        near_misses: deque[NearMiss] = deque(maxlen=self.near_miss_capacity)

        for index in range(self.warmup_bars, length):
            price = close[index]
            fast_value = trend_fast[index]
            slow_value = trend_slow[index]
            if not (np.isfinite(price) and np.isfinite(fast_value) and np.isfinite(slow_value)):
                continue

            time = int(close_times[index])

            bullish_cross = bool(
                macd_line[index - 1] <= signal_line[index - 1] and macd_line[index] > signal_line[index]
            )
            bearish_cross = bool(
                macd_line[index - 1] >= signal_line[index - 1] and macd_line[index] < signal_line[index]
            )

            hist_now = histogram[index] if np.isfinite(histogram[index]) else 0.0
            hist_prev = histogram[index - 1] if np.isfinite(histogram[index - 1]) else hist_now
            momentum_up = hist_now >= 0 and (hist_now >= hist_prev or bullish_cross)
            momentum_down = hist_now <= 0 and (hist_now <= hist_prev or bearish_cross)

            rsi_value = rsi[index] if np.isfinite(rsi[index]) else _NEUTRAL_RSI

            long_eval = evaluate_conditions(SignalType.LONG, list(zip(self._long_labels, (
                fast_value > slow_value,
                bullish_cross or momentum_up,
                rsi_value <= self.long_rsi_max,
                price >= fast_value * (1 - self.ema_tolerance),
            ))))
            short_eval = evaluate_conditions(SignalType.SHORT, list(zip(self._short_labels, (
                fast_value < slow_value,
                bearish_cross or momentum_down,
                rsi_value >= self.short_rsi_min,
                price <= fast_value * (1 + self.ema_tolerance),
            ))))

            for evaluation, reason in ((long_eval, LONG_REASON), (short_eval, SHORT_REASON)):
                if evaluation.is_signal:
                    signals.append(Signal(time=time, price=float(price), type=evaluation.bias, reason=reason))
                    logger.debug("signal_emitted", lane="primary", type=evaluation.bias.value, time=time)
                elif evaluation.is_near_miss:
                    near_misses.append(NearMiss(
                        time=time,
                        price=float(price),
                        bias=evaluation.bias,
                        satisfied=evaluation.satisfied,
                        missing=evaluation.missing,
                    ))
                    logger.debug(
                        "near_miss_recorded",
                        bias=evaluation.bias.value,
                        missing=evaluation.missing[0],
                        time=time,
                    )

            lane_fast_now = lane_fast[index]
            lane_slow_now = lane_slow[index]
            lane_fast_prev = lane_fast[index - 1]
            lane_slow_prev = lane_slow[index - 1]
            if not all(np.isfinite(v) for v in (lane_fast_now, lane_slow_now, lane_fast_prev, lane_slow_prev)):
                continue

            fast_bull_cross = lane_fast_prev <= lane_slow_prev and lane_fast_now > lane_slow_now
            fast_bear_cross = lane_fast_prev >= lane_slow_prev and lane_fast_now < lane_slow_now

            if fast_bull_cross and (momentum_up or hist_now > 0) and price >= lane_fast_now:
                fast_signals.append(Signal(time=time, price=float(price), type=SignalType.LONG, reason=FAST_LONG_REASON))
                logger.debug("signal_emitted", lane="fast", type=SignalType.LONG.value, time=time)
            elif fast_bear_cross and (momentum_down or hist_now < 0) and price <= lane_fast_now:
                fast_signals.append(Signal(time=time, price=float(price), type=SignalType.SHORT, reason=FAST_SHORT_REASON))
                logger.debug("signal_emitted", lane="fast", type=SignalType.SHORT.value, time=time)

        trend_details = self.build_trend(indicators)
        validations = validate_decisions(frame, signals, self.validation_horizon)

        logger.info(
            "signals_generated",
            candles=length,
            signals=len(signals),
            fast_signals=len(fast_signals),
            near_misses=len(near_misses),
            trend=trend_details.direction.value,
            confidence=trend_details.confidence,
        )

        return StrategyResult(
            signals=signals,
            fast_signals=fast_signals,
            diagnostics=StrategyDiagnostics(
                near_misses=list(near_misses),
                last_evaluated_candle=int(close_times[-1]),
            ),
            trend=trend_details.direction,
            trend_details=trend_details,
            validations=validations,
        )


def generate_signals(
    candles: CandleInput,
    engine: Optional[SignalEngine] = None,
) -> StrategyResult:
    """
    Generate signals, trend and validations for a candle batch.

    Args:
        candles: Chronological candles (DataFrame or Candle sequence)
        engine: Configured engine (default parameters if not provided)

    Returns:
        StrategyResult
    """
    return (engine or SignalEngine()).run(candles)
