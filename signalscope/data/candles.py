"""
Candle records and DataFrame normalisation.

The engine works on a pandas DataFrame whose row order is the chronological
order of the bars. Lookahead and warm-up logic use positional (iloc) indexes,
so every entry point normalises its input through candles_to_frame() first.

Columns:
    open_time, open, high, low, close, volume, close_time

Times are epoch milliseconds. Gaps between bars are tolerated: the engine
never assumes evenly spaced timestamps, only ascending order.
"""

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd
import structlog

logger = structlog.get_logger(__name__)

CANDLE_COLUMNS = ["open_time", "open", "high", "low", "close", "volume", "close_time"]
_PRICE_COLUMNS = ["open", "high", "low", "close", "volume"]

# Bar durations for the supported candle intervals
INTERVAL_MS = {
    "1m": 60_000,
    "5m": 5 * 60_000,
    "15m": 15 * 60_000,
    "1h": 60 * 60_000,
    "4h": 4 * 60 * 60_000,
    "1d": 24 * 60 * 60_000,
}


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar."""

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int


CandleInput = Union[pd.DataFrame, Sequence[Candle]]


def candles_to_frame(candles: CandleInput) -> pd.DataFrame:
    """
    Normalise candle input to a DataFrame with a RangeIndex.

    Args:
        candles: DataFrame with the candle columns, or a sequence of Candle

    Returns:
        New DataFrame with float price columns and int64 time columns

    Raises:
        ValueError: If a non-empty DataFrame is missing required columns
    """
    if isinstance(candles, pd.DataFrame):
        if candles.empty:
            return pd.DataFrame(columns=CANDLE_COLUMNS)
        missing = [column for column in CANDLE_COLUMNS if column not in candles.columns]
        if missing:
            raise ValueError(f"Candle data is missing columns: {missing}")
        frame = candles[CANDLE_COLUMNS].copy()
    else:
        frame = pd.DataFrame([asdict(candle) for candle in candles], columns=CANDLE_COLUMNS)

    frame = frame.reset_index(drop=True)
    if frame.empty:
        return frame

    frame[_PRICE_COLUMNS] = frame[_PRICE_COLUMNS].astype(float)
    frame["open_time"] = frame["open_time"].astype("int64")
    frame["close_time"] = frame["close_time"].astype("int64")
    return frame


def frame_to_candles(frame: pd.DataFrame) -> list[Candle]:
    """Convert a candle DataFrame back into Candle records."""
    return [
        Candle(
            open_time=int(row.open_time),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
            close_time=int(row.close_time),
        )
        for row in frame.itertuples(index=False)
    ]


def load_candles_csv(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load candles from a CSV file.

    Extra columns are ignored. Rows are sorted by close_time so that
    positional lookahead matches chronological order.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If required columns are missing
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Candle file not found: {path}")

    raw = pd.read_csv(path)
    frame = candles_to_frame(raw)
    if not frame.empty:
        frame = frame.sort_values("close_time", kind="stable").reset_index(drop=True)

    logger.info("candles_loaded", path=str(path), rows=len(frame))
    return frame


def infer_interval_ms(frame: pd.DataFrame, fallback_interval: Optional[str] = None) -> Optional[int]:
    """
    Infer the bar duration from the median spacing of open times.

    Falls back to the named interval when fewer than two candles exist
    or the spacing is not positive.

    Returns:
        Interval in milliseconds, or None if it cannot be determined
    """
    if len(frame) >= 2:
        spacing = frame["open_time"].diff().dropna().median()
        if pd.notna(spacing) and spacing > 0:
            return int(spacing)

    if fallback_interval is None:
        return None
    return INTERVAL_MS.get(fallback_interval)
