"""
Signal event records emitted by the signal engine.
"""

from dataclasses import dataclass
from enum import Enum


class SignalType(str, Enum):
    """Direction of a signal or near-miss."""
    LONG = "LONG"
    SHORT = "SHORT"
    FLAT = "FLAT"

    @property
    def expected_direction(self) -> int:
        """+1 for LONG, -1 for SHORT, 0 for FLAT."""
        if self is SignalType.LONG:
            return 1
        if self is SignalType.SHORT:
            return -1
        return 0


@dataclass(frozen=True)
class Signal:
    """A directional call on a closed candle."""

    time: int  # close_time of the triggering candle (ms)
    price: float  # close of the triggering candle
    type: SignalType
    reason: str


@dataclass(frozen=True)
class NearMiss:
    """A bar that met all but one condition of a rule set."""

    time: int
    price: float
    bias: SignalType  # LONG or SHORT
    satisfied: tuple[str, ...]
    missing: tuple[str, ...]
