"""
Tests for decision analytics.

Tests cover:
- Validation summary counts and win rate
- Expected-vs-actual points and Pearson correlation
- Strategy health (expectancy, profit factor, drawdown, streaks)
- Pattern grouping, filtering, ranking and summary
- Direction lanes and flat tolerance
- Review window status against the current time
"""

import math

import pytest
from freezegun import freeze_time

from signalscope.backtest.analytics import (
    UNCLASSIFIED_PATTERN,
    DecisionAnalytics,
    PatternAnalytics,
    ReviewStatus,
    ValidationPoint,
    analyze_decisions,
    build_lane_summaries,
    build_pattern_analytics,
    build_review_window,
    build_validation_analytics,
    build_validation_summary,
    compute_correlation,
    compute_strategy_health,
)
from signalscope.backtest.decision_validator import DecisionValidation, Outcome
from signalscope.strategy.signals import Signal, SignalType
from signalscope.strategy.trend_scorer import TrendDirection


HOUR_MS = 60 * 60 * 1000


def _validation(time, change, signal_type=SignalType.LONG, horizon=5, actual_horizon=5):
    """Validation with the outcome implied by the direction-adjusted change."""
    if change is None or change == 0:
        outcome = Outcome.PENDING
    else:
        outcome = Outcome.WIN if change > 0 else Outcome.LOSS
    completed = change is not None
    return DecisionValidation(
        signal_time=time,
        signal_type=signal_type,
        entry_price=100.0,
        evaluation_time=time + actual_horizon * HOUR_MS if completed else None,
        exit_price=100.0 + change * signal_type.expected_direction if completed else None,
        horizon_candles=horizon,
        actual_horizon=actual_horizon,
        direction_change_pct=change,
        outcome=outcome,
    )


def _series(changes, signal_type=SignalType.LONG, start=0):
    return [_validation(start + i * HOUR_MS, change, signal_type) for i, change in enumerate(changes)]


def _signals_for(validations, reason):
    return [
        Signal(time=v.signal_time, price=v.entry_price, type=v.signal_type, reason=reason)
        for v in validations
    ]


# ============================================================================
# Validation Summary Tests
# ============================================================================

def test_summary_counts():
    validations = _series([2.0, -1.0, None])
    summary = build_validation_summary(validations)

    assert summary.wins == 1
    assert summary.losses == 1
    assert summary.pending == 1
    assert summary.win_rate == 50
    assert summary.last_outcome == Outcome.PENDING
    assert summary.last_change_pct is None


def test_summary_win_rate_rounds_half_up():
    summary = build_validation_summary(_series([1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0, -1.0]))

    # 7 / 8 = 87.5%
    assert summary.win_rate == 88


def test_summary_all_pending():
    summary = build_validation_summary(_series([None, None]))

    assert summary.win_rate is None
    assert summary.pending == 2


def test_summary_empty():
    assert build_validation_summary([]) is None


# ============================================================================
# Correlation Tests
# ============================================================================

def test_correlation_perfect():
    assert compute_correlation([1, -1], [2, 1]) == pytest.approx(1.0)
    assert compute_correlation([1, -1], [-1, 1]) == pytest.approx(-1.0)


def test_correlation_bounds():
    correlation = compute_correlation([1, -1, 1, -1, 1], [3.0, -2.0, -0.5, 1.0, 2.5])

    assert -1.0 <= correlation <= 1.0


def test_correlation_undefined():
    """Fewer than two points or zero variance gives None."""
    assert compute_correlation([1], [2.0]) is None
    assert compute_correlation([], []) is None
    assert compute_correlation([1, 1, 1], [1.0, -2.0, 3.0]) is None


# ============================================================================
# Validation Analytics Tests
# ============================================================================

def test_validation_points():
    validations = _series([2.0], SignalType.LONG) + _series([1.0, None], SignalType.SHORT, start=10 * HOUR_MS)
    analytics = build_validation_analytics(validations)

    assert len(analytics.points) == 2
    assert [point.expected for point in analytics.points] == [1, -1]
    assert [point.cumulative for point in analytics.points] == [2.0, 3.0]
    assert [point.index for point in analytics.points] == [0, 1]
    assert analytics.total_return == 3.0
    assert analytics.correlation == pytest.approx(1.0)


def test_validation_analytics_all_pending():
    assert build_validation_analytics(_series([None, 0.0])) is None


def test_single_direction_has_no_correlation():
    analytics = build_validation_analytics(_series([2.0, -1.0, 3.0]))

    assert analytics.correlation is None


# ============================================================================
# Strategy Health Tests
# ============================================================================

def test_health_metrics():
    health = compute_strategy_health(_series([2.0, -3.0, 1.0, -2.0]))

    assert health.trades_evaluated == 4
    assert health.expectancy == pytest.approx(-0.5)
    assert health.average_gain == pytest.approx(1.5)
    assert health.average_loss == pytest.approx(-2.5)
    assert health.profit_factor == pytest.approx(0.6)
    # cumulative path 2, -1, 0, -2 from a peak of 2
    assert health.max_drawdown == pytest.approx(-4.0)
    assert health.last_outcome == Outcome.LOSS
    assert health.last_return == -2.0


def test_health_streaks():
    health = compute_strategy_health(_series([1.0, 1.0, -1.0, -1.0, -1.0, 1.0]))

    assert health.best_win_streak == 2
    assert health.best_loss_streak == 3


def test_profit_factor_without_losses_is_infinite():
    health = compute_strategy_health(_series([1.0, 2.0]))

    assert math.isinf(health.profit_factor)
    assert health.max_drawdown == 0.0
    assert health.average_loss is None


def test_profit_factor_without_gains_is_zero():
    health = compute_strategy_health(_series([-1.0, -2.0]))

    assert health.profit_factor == 0.0
    assert health.average_gain is None
    assert health.max_drawdown == pytest.approx(-3.0)


def test_health_ignores_pending():
    health = compute_strategy_health(_series([None, 2.0, 0.0]))

    assert health.trades_evaluated == 1
    assert compute_strategy_health(_series([None])) is None


# ============================================================================
# Pattern Analytics Tests
# ============================================================================

def test_pattern_bucket_statistics():
    """Two LONGs with the same reason returning +3 and -1."""
    validations = _series([3.0, -1.0])
    patterns = build_pattern_analytics(validations, _signals_for(validations, "Breakout")).patterns

    assert len(patterns) == 1
    pattern = patterns[0]
    assert pattern.label == "Breakout"
    assert pattern.type == SignalType.LONG
    assert pattern.occurrences == 2
    assert pattern.average_return == pytest.approx(1.0)
    assert pattern.win_rate == 50
    assert pattern.best_return == 3.0
    assert pattern.worst_return == -1.0
    assert pattern.risk_reward == 3.0


def test_pattern_without_losses_has_no_risk_reward():
    validations = _series([1.0, 2.0])
    pattern = build_pattern_analytics(validations, _signals_for(validations, "A")).patterns[0]

    assert pattern.worst_return is None
    assert pattern.risk_reward is None
    assert pattern.win_rate == 100


def test_patterns_split_by_signal_type():
    longs = _series([1.0, 2.0])
    shorts = _series([1.0, 2.0], SignalType.SHORT, start=10 * HOUR_MS)
    validations = longs + shorts
    patterns = build_pattern_analytics(validations, _signals_for(validations, "Same reason")).patterns

    assert sorted(pattern.type for pattern in patterns) == [SignalType.LONG, SignalType.SHORT]


def test_small_buckets_dropped():
    validations = _series([1.0])
    result = build_pattern_analytics(validations, _signals_for(validations, "Rare"))

    assert result == PatternAnalytics()


def test_unmatched_validations_are_unclassified():
    validations = _series([1.0, -0.5])
    pattern = build_pattern_analytics(validations, []).patterns[0]

    assert pattern.label == UNCLASSIFIED_PATTERN
    assert pattern.type == SignalType.LONG


def test_pattern_ranking_and_limit():
    """Ranked by occurrences, then by average return; capped at the limit."""
    frequent = _series([0.5, 0.5, 0.5], start=0)
    strong = _series([4.0, 2.0], start=100 * HOUR_MS)
    weak = _series([-1.0, -3.0], start=200 * HOUR_MS)
    signals = (
        _signals_for(frequent, "Frequent")
        + _signals_for(strong, "Strong")
        + _signals_for(weak, "Weak")
    )
    validations = weak + strong + frequent

    result = build_pattern_analytics(validations, signals)
    assert [pattern.label for pattern in result.patterns] == ["Frequent", "Strong", "Weak"]

    limited = build_pattern_analytics(validations, signals, limit=2)
    assert [pattern.label for pattern in limited.patterns] == ["Frequent", "Strong"]


def test_pattern_summary():
    frequent = _series([0.5, 0.5, 0.5], start=0)
    strong = _series([4.0, 2.0], start=100 * HOUR_MS)
    weak = _series([-1.0, -3.0], start=200 * HOUR_MS)
    signals = (
        _signals_for(frequent, "Frequent")
        + _signals_for(strong, "Strong")
        + _signals_for(weak, "Weak")
    )
    summary = build_pattern_analytics(frequent + strong + weak, signals).summary

    # averages 0.5, 3.0, -2.0; win rates 100, 100, 0
    assert summary.dominant_bias == TrendDirection.BULL
    assert summary.mean_average_return == pytest.approx(0.5)
    assert summary.combined_win_rate == 67


def test_pattern_summary_bearish():
    losing = _series([-1.0, -2.0])
    summary = build_pattern_analytics(losing, _signals_for(losing, "Fade")).summary

    assert summary.dominant_bias == TrendDirection.BEAR
    assert summary.combined_win_rate == 0


def test_min_occurrences_override():
    validations = _series([1.0])
    patterns = build_pattern_analytics(validations, _signals_for(validations, "Rare"), min_occurrences=1).patterns

    assert len(patterns) == 1


# ============================================================================
# Lane Tests
# ============================================================================

def _point(index, expected, actual, outcome):
    return ValidationPoint(index=index, time=index, expected=expected, actual=actual, outcome=outcome, cumulative=0.0)


def test_lane_summaries():
    points = [
        _point(0, 1, 2.0, Outcome.WIN),
        _point(1, 1, -1.0, Outcome.LOSS),
        _point(2, -1, 1.0, Outcome.WIN),
    ]
    lanes = {lane.expected: lane for lane in build_lane_summaries(points)}

    assert [lane.label for lane in build_lane_summaries(points)] == ["Long calls", "Flat guidance", "Short calls"]
    assert lanes[1].total == 2
    assert lanes[1].wins == 1
    assert lanes[1].losses == 1
    assert lanes[1].alignment_rate == 50
    assert lanes[1].average_return == pytest.approx(0.5)
    assert lanes[-1].alignment_rate == 100
    assert lanes[0].total == 0
    assert lanes[0].alignment_rate is None
    assert lanes[0].average_return is None


def test_flat_lane_tolerance():
    """Flat points align when the move stays within max(0.2, 15% of the largest move)."""
    points = [
        _point(0, 1, 10.0, Outcome.WIN),
        _point(1, 0, 1.4, Outcome.PENDING),
        _point(2, 0, -1.6, Outcome.PENDING),
    ]
    flat = next(lane for lane in build_lane_summaries(points) if lane.expected == 0)

    # tolerance = 1.5
    assert flat.total == 2
    assert flat.pending == 2
    assert flat.alignment_rate == 50


def test_flat_lane_tolerance_floor():
    points = [_point(0, 0, 0.15, Outcome.PENDING), _point(1, 0, 0.25, Outcome.PENDING)]
    flat = next(lane for lane in build_lane_summaries(points) if lane.expected == 0)

    assert flat.alignment_rate == 50


# ============================================================================
# Review Window Tests
# ============================================================================

def test_review_window_completed():
    validations = _series([None, 2.0])
    window = build_review_window(validations, HOUR_MS)

    assert window.status == ReviewStatus.COMPLETED
    assert window.horizon_bars == 5
    assert window.due_time == HOUR_MS + 5 * HOUR_MS
    assert window.evaluation_time == validations[-1].evaluation_time


def test_review_window_pending_and_overdue():
    validations = [_validation(1_000, None, actual_horizon=3)]
    due = 1_000 + 3 * HOUR_MS

    assert build_review_window(validations, HOUR_MS, now_ms=due).status == ReviewStatus.PENDING
    assert build_review_window(validations, HOUR_MS, now_ms=due + 1).status == ReviewStatus.OVERDUE


def test_review_window_uses_nominal_horizon_when_unlocated():
    validations = [_validation(1_000, None, horizon=7, actual_horizon=None)]
    window = build_review_window(validations, HOUR_MS, now_ms=0)

    assert window.horizon_bars == 7
    assert window.due_time == 1_000 + 7 * HOUR_MS


def test_review_window_without_interval():
    window = build_review_window(_series([None]), None, now_ms=10**15)

    assert window.due_time is None
    assert window.status == ReviewStatus.PENDING


@freeze_time("2024-01-01 00:00:00")
def test_review_window_defaults_to_current_utc_time():
    now_ms = 1_704_067_200_000
    recent = [_validation(now_ms - HOUR_MS, None)]
    stale = [_validation(now_ms - 10 * HOUR_MS, None)]

    assert build_review_window(recent, HOUR_MS).status == ReviewStatus.PENDING
    assert build_review_window(stale, HOUR_MS).status == ReviewStatus.OVERDUE


def test_review_window_empty():
    assert build_review_window([], HOUR_MS) is None


# ============================================================================
# Bundle Tests
# ============================================================================

def test_analyze_decisions_empty():
    result = analyze_decisions([], [])

    assert result == DecisionAnalytics(
        summary=None,
        analytics=None,
        health=None,
        patterns=PatternAnalytics(),
        lanes=None,
        review_window=None,
    )


def test_analyze_decisions_bundle():
    validations = _series([3.0, -1.0, None])
    signals = _signals_for(validations, "Breakout")
    result = analyze_decisions(validations, signals, interval_ms=HOUR_MS, now_ms=0)

    assert result.summary.wins == 1
    assert len(result.analytics.points) == 2
    assert result.health.profit_factor == pytest.approx(3.0)
    assert result.patterns.patterns[0].occurrences == 2
    assert len(result.lanes) == 3
    assert result.review_window.status == ReviewStatus.PENDING
