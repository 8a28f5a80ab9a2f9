"""
Configuration settings with Pydantic validation.
All settings are loaded from environment variables.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CandleInterval(str, Enum):
    """Supported candle intervals."""
    ONE_MINUTE = "1m"
    FIVE_MINUTE = "5m"
    FIFTEEN_MINUTE = "15m"
    ONE_HOUR = "1h"
    FOUR_HOUR = "4h"
    ONE_DAY = "1d"


class Settings(BaseSettings):
    """Main application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Market
    trading_pair: str = Field(
        default="BTC-USDT",
        description="Trading pair the candles belong to (display only)"
    )
    candle_interval: CandleInterval = Field(
        default=CandleInterval.ONE_HOUR,
        description="Candle interval, used when it cannot be inferred from the data"
    )

    # Signal engine
    warmup_bars: int = Field(
        default=200,
        ge=1,
        description="First bar index evaluated for signals (EMA200 warm-up)"
    )
    trend_fast_period: int = Field(
        default=50,
        ge=2,
        le=500,
        description="Trend EMA period (EMA50)"
    )
    trend_slow_period: int = Field(
        default=200,
        ge=2,
        le=1000,
        description="Long-term EMA period (EMA200)"
    )
    fast_lane_fast_period: int = Field(
        default=9,
        ge=2,
        le=100,
        description="Fast-lane short EMA period"
    )
    fast_lane_slow_period: int = Field(
        default=21,
        ge=2,
        le=200,
        description="Fast-lane long EMA period"
    )
    rsi_period: int = Field(
        default=14,
        ge=2,
        le=100,
        description="RSI calculation period"
    )
    macd_fast: int = Field(
        default=12,
        ge=2,
        le=50,
        description="MACD fast EMA period"
    )
    macd_slow: int = Field(
        default=26,
        ge=5,
        le=100,
        description="MACD slow EMA period"
    )
    macd_signal: int = Field(
        default=9,
        ge=2,
        le=50,
        description="MACD signal line period"
    )
    long_rsi_max: float = Field(
        default=45.0,
        ge=0.0,
        le=100.0,
        description="LONG rule set requires RSI at or below this"
    )
    short_rsi_min: float = Field(
        default=55.0,
        ge=0.0,
        le=100.0,
        description="SHORT rule set requires RSI at or above this"
    )
    ema_tolerance: float = Field(
        default=0.005,
        ge=0.0,
        le=0.1,
        description="Fraction price may sit past EMA50 and still count as on the right side"
    )
    near_miss_capacity: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Number of most recent near-misses retained"
    )

    # Trend scoring
    trend_slope_lookback: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Bars back used for the EMA50 slope factor"
    )
    trend_rsi_bull: float = Field(
        default=55.0,
        ge=0.0,
        le=100.0,
        description="RSI at or above this scores bullish"
    )
    trend_rsi_bear: float = Field(
        default=45.0,
        ge=0.0,
        le=100.0,
        description="RSI at or below this scores bearish"
    )

    # Decision validation
    validation_horizon: int = Field(
        default=5,
        ge=1,
        le=500,
        description="Bars of lookahead used to score each signal"
    )
    pattern_min_occurrences: int = Field(
        default=2,
        ge=1,
        description="Minimum occurrences for a pattern to be reported"
    )
    pattern_limit: int = Field(
        default=6,
        ge=1,
        le=50,
        description="Maximum number of patterns reported"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Path to log file (console only if unset)"
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON instead of the console format"
    )

    @field_validator("trend_slow_period")
    @classmethod
    def validate_trend_slow_period(cls, v: int, info) -> int:
        """Ensure slow trend EMA is greater than fast trend EMA."""
        if "trend_fast_period" in info.data and v <= info.data["trend_fast_period"]:
            raise ValueError("trend_slow_period must be greater than trend_fast_period")
        return v

    @field_validator("fast_lane_slow_period")
    @classmethod
    def validate_fast_lane_slow_period(cls, v: int, info) -> int:
        """Ensure slow fast-lane EMA is greater than fast fast-lane EMA."""
        if "fast_lane_fast_period" in info.data and v <= info.data["fast_lane_fast_period"]:
            raise ValueError("fast_lane_slow_period must be greater than fast_lane_fast_period")
        return v

    @field_validator("macd_slow")
    @classmethod
    def validate_macd_slow(cls, v: int, info) -> int:
        """Ensure slow MACD is greater than fast MACD."""
        if "macd_fast" in info.data and v <= info.data["macd_fast"]:
            raise ValueError("macd_slow must be greater than macd_fast")
        return v

    @field_validator("short_rsi_min")
    @classmethod
    def validate_short_rsi_min(cls, v: float, info) -> float:
        """Ensure the SHORT RSI floor does not sit below the LONG RSI ceiling."""
        if "long_rsi_max" in info.data and v < info.data["long_rsi_max"]:
            raise ValueError("short_rsi_min must be greater than or equal to long_rsi_max")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level must be a standard logging level, got {v}")
        return level

    @model_validator(mode="after")
    def validate_trend_rsi_thresholds(self) -> "Settings":
        """Validate trend RSI threshold ordering."""
        if self.trend_rsi_bull <= self.trend_rsi_bear:
            raise ValueError(
                f"trend_rsi_bull ({self.trend_rsi_bull}) must be greater than "
                f"trend_rsi_bear ({self.trend_rsi_bear})"
            )
        return self


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
