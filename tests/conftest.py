"""
Pytest configuration and shared fixtures for signalscope tests.
"""

import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import MagicMock
import pandas as pd
import numpy as np

# Silence structlog during tests
import structlog


def _mock_logger_factory(*args):
    """Factory that creates mock loggers for testing."""
    mock = MagicMock()
    # Configure mock methods to return the mock itself (for chaining)
    mock.bind.return_value = mock
    return mock


structlog.configure(
    processors=[],
    logger_factory=_mock_logger_factory,
)

HOUR_MS = 60 * 60 * 1000
START_MS = 1_700_000_000_000


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture
def make_candles():
    """Build an hourly candle frame from a list of closing prices."""
    def _make(closes, start_ms=START_MS, interval_ms=HOUR_MS):
        closes = [float(c) for c in closes]
        open_times = [start_ms + i * interval_ms for i in range(len(closes))]
        return pd.DataFrame({
            "open_time": open_times,
            "open": closes,
            "high": [c * 1.001 for c in closes],
            "low": [c * 0.999 for c in closes],
            "close": closes,
            "volume": [1000.0] * len(closes),
            "close_time": [t + interval_ms - 1 for t in open_times],
        })
    return _make


@pytest.fixture
def sample_ohlcv_data():
    """Generate sample OHLCV candles for testing indicators and the engine."""
    def _generate(length=300, base_price=100.0, volatility=0.02, seed=42):
        """
        Generate realistic hourly OHLCV candles.

        Args:
            length: Number of candles
            base_price: Starting price
            volatility: Price volatility (0.01 = 1%)
            seed: Random seed (deterministic for tests)
        """
        rng = np.random.default_rng(seed)

        prices = []
        current = base_price

        for _ in range(length):
            # Random walk with drift
            change = rng.standard_normal() * volatility * current
            current = max(1.0, current + change)
            prices.append(current)

        data = {
            'open_time': [],
            'open': [],
            'high': [],
            'low': [],
            'close': [],
            'volume': [],
            'close_time': [],
        }

        for i, price in enumerate(prices):
            o = price * (1 + rng.uniform(-0.005, 0.005))
            c = price * (1 + rng.uniform(-0.005, 0.005))
            h = max(o, c) * (1 + abs(rng.uniform(0, 0.01)))
            l = min(o, c) * (1 - abs(rng.uniform(0, 0.01)))
            v = rng.uniform(1000, 10000)
            open_time = START_MS + i * HOUR_MS

            data['open_time'].append(open_time)
            data['open'].append(o)
            data['high'].append(h)
            data['low'].append(l)
            data['close'].append(c)
            data['volume'].append(v)
            data['close_time'].append(open_time + HOUR_MS - 1)

        return pd.DataFrame(data)

    return _generate
