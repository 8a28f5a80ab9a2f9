"""
Analytics over validated decisions.

Everything here works on the "completed" set: validations with a realised
direction-adjusted return and a WIN/LOSS outcome. PENDING decisions only
count towards the validation summary and the review window.

Metrics:
    - Validation points: expected direction (+1/0/-1) vs realised return,
      running cumulative return and their Pearson correlation
    - Strategy health: expectancy, profit factor, max drawdown of the
      cumulative return path, longest win/loss streaks
    - Pattern analytics: returns grouped by (signal reason, signal type)
    - Direction lanes: wins/losses/alignment per expected direction
    - Review window: when the latest decision is due to be evaluated

All returns are percentages where positive means the call was right.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import pandas as pd
import structlog

from signalscope.backtest.decision_validator import DecisionValidation, Outcome
from signalscope.indicators.series import round_half_up
from signalscope.strategy.signals import Signal, SignalType
from signalscope.strategy.trend_scorer import TrendDirection

logger = structlog.get_logger(__name__)

UNCLASSIFIED_PATTERN = "Unclassified pattern"

# Flat-lane alignment tolerance: max(_FLAT_TOLERANCE_FLOOR, share * largest |return|)
_FLAT_TOLERANCE_FLOOR = 0.2
_FLAT_TOLERANCE_SHARE = 0.15
_FLAT_MAGNITUDE_FLOOR = 0.5

_LANES = (
    (1, "Long calls"),
    (0, "Flat guidance"),
    (-1, "Short calls"),
)


@dataclass
class ValidationSummary:
    """Outcome counts over all validations, pending included."""

    wins: int
    losses: int
    pending: int
    win_rate: Optional[int]  # percent of completed, None if none completed
    last_outcome: Optional[Outcome]
    last_change_pct: Optional[float]


@dataclass(frozen=True)
class ValidationPoint:
    """One completed decision on the cumulative return path."""

    index: int
    time: int
    expected: int  # +1 LONG, -1 SHORT, 0 FLAT
    actual: float
    outcome: Outcome
    cumulative: float


@dataclass
class ValidationAnalytics:
    """Expected vs realised direction over the completed decisions."""

    points: list[ValidationPoint]
    total_return: float
    correlation: Optional[float]


@dataclass
class StrategyHealth:
    """Aggregate quality metrics of the completed decisions."""

    trades_evaluated: int
    expectancy: float
    average_gain: Optional[float]
    average_loss: Optional[float]
    profit_factor: Optional[float]  # inf when there are gains and no losses
    max_drawdown: float  # <= 0
    best_win_streak: int
    best_loss_streak: int
    last_outcome: Outcome
    last_return: Optional[float]


@dataclass(frozen=True)
class PatternInsight:
    """Returns of one recurring (reason, type) setup."""

    label: str
    type: SignalType
    occurrences: int
    average_return: float
    win_rate: int
    best_return: Optional[float]
    worst_return: Optional[float]
    risk_reward: Optional[float]


@dataclass(frozen=True)
class PatternSummary:
    """Aggregate view of the leading patterns."""

    dominant_bias: TrendDirection  # BULL or BEAR
    mean_average_return: float
    combined_win_rate: int


@dataclass
class PatternAnalytics:
    """Ranked patterns and their summary."""

    patterns: list[PatternInsight] = field(default_factory=list)
    summary: Optional[PatternSummary] = None


@dataclass(frozen=True)
class LaneSummary:
    """Completed decisions grouped by expected direction."""

    label: str
    expected: int
    total: int
    wins: int
    losses: int
    pending: int
    alignment_rate: Optional[int]
    average_return: Optional[float]


class ReviewStatus(str, Enum):
    """Evaluation state of the most recent decision."""
    PENDING = "pending"
    OVERDUE = "overdue"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ReviewWindow:
    """When the latest decision is (or was) due for evaluation."""

    status: ReviewStatus
    due_time: Optional[int]
    evaluation_time: Optional[int]
    horizon_bars: int


@dataclass
class DecisionAnalytics:
    """Bundle of every analytics view over one engine result."""

    summary: Optional[ValidationSummary]
    analytics: Optional[ValidationAnalytics]
    health: Optional[StrategyHealth]
    patterns: PatternAnalytics
    lanes: Optional[list[LaneSummary]]
    review_window: Optional[ReviewWindow]


def completed_validations(validations: Sequence[DecisionValidation]) -> list[DecisionValidation]:
    """Validations with a realised return and a WIN/LOSS outcome."""
    return [validation for validation in validations if validation.is_completed]


def build_validation_summary(validations: Sequence[DecisionValidation]) -> Optional[ValidationSummary]:
    """Count outcomes across all validations."""
    if not validations:
        return None

    completed = [v for v in validations if v.outcome != Outcome.PENDING]
    wins = sum(1 for v in completed if v.outcome == Outcome.WIN)
    losses = sum(1 for v in completed if v.outcome == Outcome.LOSS)
    latest = validations[-1]

    return ValidationSummary(
        wins=wins,
        losses=losses,
        pending=len(validations) - len(completed),
        win_rate=round_half_up(wins / len(completed) * 100) if completed else None,
        last_outcome=latest.outcome,
        last_change_pct=latest.direction_change_pct,
    )


def compute_correlation(x_values: Sequence[float], y_values: Sequence[float]) -> Optional[float]:
    """
    Pearson correlation coefficient of two sequences.

    Returns:
        Correlation in [-1, 1], or None with fewer than 2 points or when
        either sequence has zero variance
    """
    length = min(len(x_values), len(y_values))
    if length < 2:
        return None

    x = np.asarray(x_values[:length], dtype=float)
    y = np.asarray(y_values[:length], dtype=float)
    x_diff = x - x.mean()
    y_diff = y - y.mean()

    denominator = float(np.sqrt(np.sum(x_diff ** 2) * np.sum(y_diff ** 2)))
    if not np.isfinite(denominator) or denominator == 0:
        return None

    correlation = float(np.sum(x_diff * y_diff)) / denominator
    return max(-1.0, min(1.0, correlation))


def build_validation_analytics(validations: Sequence[DecisionValidation]) -> Optional[ValidationAnalytics]:
    """Map completed decisions to expected/actual points and correlate them."""
    completed = completed_validations(validations)
    if not completed:
        return None

    points: list[ValidationPoint] = []
    cumulative = 0.0
    for index, validation in enumerate(completed):
        actual = float(validation.direction_change_pct)
        cumulative += actual
        points.append(ValidationPoint(
            index=index,
            time=validation.signal_time,
            expected=validation.signal_type.expected_direction,
            actual=actual,
            outcome=validation.outcome,
            cumulative=cumulative,
        ))

    correlation = compute_correlation(
        [point.expected for point in points],
        [point.actual for point in points],
    )

    return ValidationAnalytics(
        points=points,
        total_return=points[-1].cumulative,
        correlation=correlation,
    )


def compute_strategy_health(validations: Sequence[DecisionValidation]) -> Optional[StrategyHealth]:
    """
    Compute expectancy, profit factor, drawdown and streaks.

    Profit factor:
        gains / |losses|; inf with gains and no losses; 0.0 with losses and
        no gains; None with neither.
    """
    completed = completed_validations(validations)
    if not completed:
        return None

    returns = pd.Series([float(v.direction_change_pct) for v in completed])
    gains = returns[returns > 0]
    losses = returns[returns < 0]

    total_gain = float(gains.sum())
    total_loss = abs(float(losses.sum()))
    if total_loss == 0:
        profit_factor = float("inf") if total_gain > 0 else None
    else:
        profit_factor = total_gain / total_loss

    # Drawdown of the cumulative return path from its running peak
    cumulative = returns.cumsum()
    drawdown = cumulative - cumulative.cummax()
    max_drawdown = min(0.0, float(drawdown.min()))

    best_win_streak = best_loss_streak = 0
    win_streak = loss_streak = 0
    for value in returns:
        if value > 0:
            win_streak += 1
            loss_streak = 0
            best_win_streak = max(best_win_streak, win_streak)
        elif value < 0:
            loss_streak += 1
            win_streak = 0
            best_loss_streak = max(best_loss_streak, loss_streak)
        else:
            win_streak = loss_streak = 0

    latest = completed[-1]

    return StrategyHealth(
        trades_evaluated=len(completed),
        expectancy=float(returns.mean()),
        average_gain=float(gains.mean()) if not gains.empty else None,
        average_loss=float(losses.mean()) if not losses.empty else None,
        profit_factor=profit_factor,
        max_drawdown=max_drawdown,
        best_win_streak=best_win_streak,
        best_loss_streak=best_loss_streak,
        last_outcome=latest.outcome,
        last_return=latest.direction_change_pct,
    )


@dataclass
class _PatternBucket:
    label: str
    type: SignalType
    returns: list[float] = field(default_factory=list)


def build_pattern_analytics(
    validations: Sequence[DecisionValidation],
    signals: Sequence[Signal],
    min_occurrences: int = 2,
    limit: int = 6,
) -> PatternAnalytics:
    """
    Group completed decisions by the rationale of the signal behind them.

    Validations are matched to signals by time. Unmatched validations fall
    into "Unclassified pattern" with their own signal type. Buckets with
    fewer than `min_occurrences` are dropped; the rest are ranked by
    occurrences, then average return, and capped at `limit`.

    The summary covers the top three patterns: BULL when at least half of
    them have a non-negative average return, else BEAR.
    """
    completed = completed_validations(validations)
    if not completed:
        return PatternAnalytics()

    signal_by_time = {signal.time: signal for signal in signals}

    buckets: dict[tuple[str, SignalType], _PatternBucket] = {}
    for validation in completed:
        signal = signal_by_time.get(validation.signal_time)
        label = signal.reason if signal is not None else UNCLASSIFIED_PATTERN
        signal_type = signal.type if signal is not None else validation.signal_type

        key = (label, signal_type)
        if key not in buckets:
            buckets[key] = _PatternBucket(label=label, type=signal_type)
        buckets[key].returns.append(float(validation.direction_change_pct))

    insights: list[PatternInsight] = []
    for bucket in buckets.values():
        count = len(bucket.returns)
        if count < min_occurrences:
            logger.debug("pattern_bucket_dropped", label=bucket.label, type=bucket.type.value, occurrences=count)
            continue

        positives = [value for value in bucket.returns if value > 0]
        negatives = [value for value in bucket.returns if value < 0]
        best_return = max(positives) if positives else None
        worst_return = min(negatives) if negatives else None

        risk_reward = None
        if best_return is not None and worst_return is not None and worst_return != 0:
            risk_reward = round(best_return / abs(worst_return), 2)

        insights.append(PatternInsight(
            label=bucket.label,
            type=bucket.type,
            occurrences=count,
            average_return=sum(bucket.returns) / count,
            win_rate=round_half_up(len(positives) / count * 100),
            best_return=best_return,
            worst_return=worst_return,
            risk_reward=risk_reward,
        ))

    patterns = sorted(insights, key=lambda item: (-item.occurrences, -item.average_return))[:limit]

    summary = None
    leaders = patterns[:3]
    if leaders:
        bullish = sum(1 for item in leaders if item.average_return >= 0)
        summary = PatternSummary(
            dominant_bias=TrendDirection.BULL if bullish >= len(leaders) / 2 else TrendDirection.BEAR,
            mean_average_return=sum(item.average_return for item in leaders) / len(leaders),
            combined_win_rate=round_half_up(sum(item.win_rate for item in leaders) / len(leaders)),
        )

    return PatternAnalytics(patterns=patterns, summary=summary)


def _is_aligned(point: ValidationPoint, flat_tolerance: float) -> bool:
    if point.expected == 0:
        return abs(point.actual) <= flat_tolerance
    return point.actual > 0


def build_lane_summaries(points: Sequence[ValidationPoint]) -> list[LaneSummary]:
    """
    Summarise points per expected direction.

    A LONG/SHORT point is aligned when its direction-adjusted return is
    positive; a FLAT point when its move stays inside the flat tolerance.
    """
    largest_move = max([abs(point.actual) for point in points] + [_FLAT_MAGNITUDE_FLOOR])
    flat_tolerance = max(_FLAT_TOLERANCE_FLOOR, largest_move * _FLAT_TOLERANCE_SHARE)

    lanes: list[LaneSummary] = []
    for expected, label in _LANES:
        lane_points = [point for point in points if point.expected == expected]
        wins = sum(1 for point in lane_points if point.outcome == Outcome.WIN)
        losses = sum(1 for point in lane_points if point.outcome == Outcome.LOSS)
        total = len(lane_points)

        alignment_rate = None
        average_return = None
        if total:
            aligned = sum(1 for point in lane_points if _is_aligned(point, flat_tolerance))
            alignment_rate = round_half_up(aligned / total * 100)
            average_return = sum(point.actual for point in lane_points) / total

        lanes.append(LaneSummary(
            label=label,
            expected=expected,
            total=total,
            wins=wins,
            losses=losses,
            pending=total - wins - losses,
            alignment_rate=alignment_rate,
            average_return=average_return,
        ))

    return lanes


def build_review_window(
    validations: Sequence[DecisionValidation],
    interval_ms: Optional[int],
    now_ms: Optional[int] = None,
) -> Optional[ReviewWindow]:
    """
    Describe the evaluation window of the most recent decision.

    Args:
        validations: Validations in signal order
        interval_ms: Bar duration; without it due_time is None
        now_ms: Current time (defaults to the current UTC time)

    Returns:
        ReviewWindow, or None when there are no validations
    """
    if not validations:
        return None

    latest = validations[-1]
    horizon_bars = latest.actual_horizon if latest.actual_horizon is not None else latest.horizon_candles
    due_time = latest.signal_time + horizon_bars * interval_ms if interval_ms else None

    if latest.outcome != Outcome.PENDING:
        status = ReviewStatus.COMPLETED
    else:
        if now_ms is None:
            now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        status = ReviewStatus.OVERDUE if due_time is not None and now_ms > due_time else ReviewStatus.PENDING

    return ReviewWindow(
        status=status,
        due_time=due_time,
        evaluation_time=latest.evaluation_time,
        horizon_bars=horizon_bars,
    )


def analyze_decisions(
    validations: Sequence[DecisionValidation],
    signals: Sequence[Signal],
    interval_ms: Optional[int] = None,
    min_occurrences: int = 2,
    pattern_limit: int = 6,
    now_ms: Optional[int] = None,
) -> DecisionAnalytics:
    """
    Build every analytics view for one set of validations.

    Args:
        validations: Validations from the signal engine
        signals: Primary signals the validations were built from
        interval_ms: Bar duration for the review window
        min_occurrences: Minimum bucket size for pattern analytics
        pattern_limit: Maximum number of patterns returned
        now_ms: Current time override for the review window

    Returns:
        DecisionAnalytics; completed-set views are None (patterns empty)
        when nothing has completed yet
    """
    analytics = build_validation_analytics(validations)

    return DecisionAnalytics(
        summary=build_validation_summary(validations),
        analytics=analytics,
        health=compute_strategy_health(validations),
        patterns=build_pattern_analytics(validations, signals, min_occurrences, pattern_limit),
        lanes=build_lane_summaries(analytics.points) if analytics is not None else None,
        review_window=build_review_window(validations, interval_ms, now_ms),
    )
