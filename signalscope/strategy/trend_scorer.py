"""
Multi-factor trend scorer.

Scores the latest bar from up to six weighted factors and turns the sum into
a direction and a confidence percentage:

    Factor               Weight   Contribution
    EMA alignment           2     +2 / -2 / 0   by sign of EMA50 - EMA200
    EMA50 slope             1     +1 / -1 / 0   EMA50 now vs `slope_lookback` bars ago
    Price vs EMA50          1     +1 / -1 / 0
    Price vs EMA200         1     +1 / -1 / 0
    MACD momentum           1     +1 / -1 / 0   by sign of the histogram
    RSI bias                1     +1 (>= 55) / -1 (<= 45) / 0

A factor whose inputs are not finite is omitted entirely, so its weight does
not count towards the confidence denominator either.

    score      = sum(contribution)
    confidence = min(100, round(|score| / sum(weight) * 100))
    direction  = BULL if score > 1, BEAR if score < -1, else NEUTRAL
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import pandas as pd
import structlog

from signalscope.indicators.series import is_ready, round_half_up, value_at

logger = structlog.get_logger(__name__)


class TrendDirection(str, Enum):
    """Directional classification of a factor or of the overall trend."""
    BULL = "BULL"
    BEAR = "BEAR"
    NEUTRAL = "NEUTRAL"


@dataclass
class TrendWeights:
    """Weight of each scoring factor."""

    ema_alignment: int = 2
    ema_slope: int = 1
    price_vs_fast: int = 1
    price_vs_slow: int = 1
    macd: int = 1
    rsi: int = 1


@dataclass(frozen=True)
class TrendFactor:
    """One scoring input and its signed contribution."""

    label: str
    detail: str
    weight: int
    contribution: int  # |contribution| <= weight
    direction: TrendDirection


@dataclass
class TrendDetails:
    """Scored trend for the latest bar."""

    score: int = 0
    confidence: int = 0  # 0-100
    direction: TrendDirection = TrendDirection.NEUTRAL
    factors: list[TrendFactor] = field(default_factory=list)


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


_DIRECTIONS = {1: TrendDirection.BULL, -1: TrendDirection.BEAR, 0: TrendDirection.NEUTRAL}


def _signed_factor(label: str, detail: str, weight: int, sign: int) -> TrendFactor:
    return TrendFactor(
        label=label,
        detail=detail,
        weight=weight,
        contribution=sign * weight,
        direction=_DIRECTIONS[sign],
    )


def _relation(sign: int, above: str, below: str, equal: str) -> str:
    return above if sign > 0 else below if sign < 0 else equal


def build_trend_details(
    close: pd.Series,
    ema_fast: pd.Series,
    ema_slow: pd.Series,
    macd_histogram: pd.Series,
    rsi: pd.Series,
    weights: Optional[TrendWeights] = None,
    slope_lookback: int = 5,
    rsi_bull: float = 55.0,
    rsi_bear: float = 45.0,
    fast_label: str = "EMA50",
    slow_label: str = "EMA200",
) -> TrendDetails:
    """
    Build trend details from the latest bar's indicator state.

    Args:
        close: Closing prices
        ema_fast: Trend EMA (EMA50)
        ema_slow: Long-term EMA (EMA200)
        macd_histogram: MACD histogram
        rsi: RSI series (may be empty if not enough data)
        weights: Factor weights (defaults to TrendWeights())
        slope_lookback: Bars back used for the EMA slope (default: 5)
        rsi_bull: RSI at or above this is bullish (default: 55)
        rsi_bear: RSI at or below this is bearish (default: 45)
        fast_label: Display name for ema_fast
        slow_label: Display name for ema_slow

    Returns:
        TrendDetails; score 0 / NEUTRAL with no factors for empty input
    """
    weights = weights or TrendWeights()

    if close.empty:
        return TrendDetails()

    last_index = len(close) - 1
    prev_index = max(0, last_index - slope_lookback)
    factors: list[TrendFactor] = []

    price = value_at(close, last_index)
    fast_value = value_at(ema_fast, last_index)
    slow_value = value_at(ema_slow, last_index)

    if is_ready(fast_value) and is_ready(slow_value):
        sign = _sign(fast_value - slow_value)
        factors.append(_signed_factor(
            "EMA alignment",
            f"{fast_label} is {_relation(sign, 'above', 'below', 'at')} {slow_label}",
            weights.ema_alignment,
            sign,
        ))

    fast_prev = value_at(ema_fast, prev_index)
    if is_ready(fast_value) and is_ready(fast_prev):
        sign = _sign(fast_value - fast_prev)
        factors.append(_signed_factor(
            f"{fast_label} slope",
            f"{fast_label} has {_relation(sign, 'rising', 'falling', 'flat')} momentum",
            weights.ema_slope,
            sign,
        ))

    if is_ready(price) and is_ready(fast_value):
        sign = _sign(price - fast_value)
        factors.append(_signed_factor(
            f"Price vs {fast_label}",
            f"Price is {_relation(sign, 'above', 'below', 'touching')} {fast_label}",
            weights.price_vs_fast,
            sign,
        ))

    if is_ready(price) and is_ready(slow_value):
        sign = _sign(price - slow_value)
        factors.append(_signed_factor(
            f"Price vs {slow_label}",
            f"Price is {_relation(sign, 'above', 'below', 'touching')} {slow_label}",
            weights.price_vs_slow,
            sign,
        ))

    histogram = value_at(macd_histogram, last_index)
    if is_ready(histogram):
        sign = _sign(histogram)
        factors.append(_signed_factor(
            "MACD momentum",
            f"Histogram is {_relation(sign, 'positive', 'negative', 'flat')}",
            weights.macd,
            sign,
        ))

    rsi_value = value_at(rsi, last_index)
    if is_ready(rsi_value):
        if rsi_value >= rsi_bull:
            sign = 1
        elif rsi_value <= rsi_bear:
            sign = -1
        else:
            sign = 0
        factors.append(_signed_factor("RSI bias", f"RSI at {rsi_value:.1f}", weights.rsi, sign))

    score = sum(factor.contribution for factor in factors)
    total_weight = sum(factor.weight for factor in factors) or 1

    if score > 1:
        direction = TrendDirection.BULL
    elif score < -1:
        direction = TrendDirection.BEAR
    else:
        direction = TrendDirection.NEUTRAL

    confidence = min(100, round_half_up(abs(score) / total_weight * 100))

    logger.debug(
        "trend_details_built",
        score=score,
        confidence=confidence,
        direction=direction.value,
        factors=len(factors),
    )

    return TrendDetails(
        score=score,
        confidence=confidence,
        direction=direction,
        factors=factors,
    )
