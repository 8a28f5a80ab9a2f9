"""
Retrospective validation of primary signals.

For each signal, looks `horizon` bars ahead of the signal's candle and
measures the realised move in the signal's direction:

    target     = min(last_index, signal_index + horizon)
    raw_change = (exit_close - entry_price) / entry_price * 100
    change     = raw_change * (+1 LONG, -1 SHORT, 0 FLAT)

A positive change always means the call was right, whichever side it took.
Near the end of the data the lookahead is cut short (actual_horizon <
horizon) instead of waiting for more bars; only a signal on the very last
candle stays PENDING for lack of lookahead.

Outcomes:
    WIN      change > 0
    LOSS     change < 0
    PENDING  change == 0, no lookahead, zero entry price, or signal candle
             not found
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import structlog

from signalscope.data.candles import CandleInput, candles_to_frame
from signalscope.strategy.signals import Signal, SignalType

logger = structlog.get_logger(__name__)

DEFAULT_HORIZON = 5


class Outcome(str, Enum):
    """Result of a validated decision."""
    WIN = "WIN"
    LOSS = "LOSS"
    PENDING = "PENDING"


@dataclass(frozen=True)
class DecisionValidation:
    """Realised outcome of one signal."""

    signal_time: int
    signal_type: SignalType
    entry_price: float
    evaluation_time: Optional[int]
    exit_price: Optional[float]
    horizon_candles: int
    actual_horizon: Optional[int]
    direction_change_pct: Optional[float]
    outcome: Outcome

    @property
    def is_completed(self) -> bool:
        """True once the decision has a realised WIN or LOSS."""
        return self.direction_change_pct is not None and self.outcome != Outcome.PENDING


def _pending(signal: Signal, horizon: int, actual_horizon: Optional[int] = None) -> DecisionValidation:
    return DecisionValidation(
        signal_time=signal.time,
        signal_type=signal.type,
        entry_price=signal.price,
        evaluation_time=None,
        exit_price=None,
        horizon_candles=horizon,
        actual_horizon=actual_horizon,
        direction_change_pct=None,
        outcome=Outcome.PENDING,
    )


def validate_decisions(
    candles: CandleInput,
    signals: Sequence[Signal],
    horizon: int = DEFAULT_HORIZON,
) -> list[DecisionValidation]:
    """
    Validate signals against the candles that followed them.

    Args:
        candles: Chronological candles (DataFrame or Candle sequence)
        signals: Primary signals to validate
        horizon: Bars of lookahead (default: 5)

    Returns:
        One DecisionValidation per signal, in signal order

    Raises:
        ValueError: If horizon is less than 1
    """
    if horizon < 1:
        raise ValueError(f"horizon must be at least 1, got {horizon}")

    frame = candles_to_frame(candles)
    if frame.empty or not signals:
        return [_pending(signal, horizon) for signal in signals]

    close_times = frame["close_time"].to_numpy()
    closes = frame["close"].to_numpy()
    last_index = len(frame) - 1

    # Later duplicates win, matching a plain dict build
    index_by_time = {int(close_time): position for position, close_time in enumerate(close_times)}

    validations: list[DecisionValidation] = []
    for signal in signals:
        signal_index = index_by_time.get(int(signal.time))
        if signal_index is None:
            logger.debug("validation_signal_not_found", signal_time=signal.time)
            validations.append(_pending(signal, horizon))
            continue

        target_index = min(last_index, signal_index + horizon)
        if target_index <= signal_index:
            validations.append(_pending(signal, horizon, actual_horizon=0))
            continue

        if signal.price == 0:
            validations.append(_pending(signal, horizon, actual_horizon=target_index - signal_index))
            continue

        exit_price = float(closes[target_index])
        raw_change_pct = (exit_price - signal.price) / signal.price * 100
        change_pct = raw_change_pct * signal.type.expected_direction

        if change_pct > 0:
            outcome = Outcome.WIN
        elif change_pct < 0:
            outcome = Outcome.LOSS
        else:
            outcome = Outcome.PENDING

        validations.append(DecisionValidation(
            signal_time=signal.time,
            signal_type=signal.type,
            entry_price=signal.price,
            evaluation_time=int(close_times[target_index]),
            exit_price=exit_price,
            horizon_candles=horizon,
            actual_horizon=target_index - signal_index,
            direction_change_pct=change_pct,
            outcome=outcome,
        ))

    logger.info(
        "decisions_validated",
        signals=len(signals),
        wins=sum(1 for v in validations if v.outcome == Outcome.WIN),
        losses=sum(1 for v in validations if v.outcome == Outcome.LOSS),
        pending=sum(1 for v in validations if v.outcome == Outcome.PENDING),
    )

    return validations
