"""
Signalscope - Main Entry Point

Runs the signal pipeline over a candle CSV and reports:
- Trend direction, confidence and scoring factors
- Primary and fast-lane signals, recent near-misses
- Validation outcomes, strategy health and recurring patterns

Usage:
    signalscope candles.csv
    signalscope candles.csv --horizon 10 --json
    python -m signalscope.main candles.csv

Configuration:
    Strategy parameters are read from environment variables / .env
    (see config/settings.py). CLI flags override them.
"""

import argparse
import json
import math
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Optional, Sequence

import structlog
from pydantic import ValidationError

from config.logging_config import setup_logging
from config.settings import Settings, get_settings
from signalscope.backtest.analytics import DecisionAnalytics, analyze_decisions
from signalscope.data.candles import infer_interval_ms, load_candles_csv
from signalscope.strategy.signal_engine import SignalEngine, StrategyResult
from signalscope.version import __version__

logger = structlog.get_logger(__name__)

_RECENT_ITEMS = 5


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="signalscope",
        description="Generate and validate trading signals from a candle CSV.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="CSV columns: open_time, open, high, low, close, volume, close_time (times in ms)",
    )
    parser.add_argument("candles", help="Path to the candle CSV file")
    parser.add_argument(
        "--horizon",
        type=int,
        default=None,
        help="Bars of lookahead for decision validation (default: VALIDATION_HORIZON or 5)",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _jsonable(value: Any) -> Any:
    """Convert report objects to JSON-safe values (inf -> "inf", NaN -> None)."""
    if is_dataclass(value) and not isinstance(value, type):
        return _jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
    return value


def build_report(settings: Settings, result: StrategyResult, analytics: DecisionAnalytics) -> dict:
    """Assemble the JSON report document."""
    return {
        "version": __version__,
        "trading_pair": settings.trading_pair,
        "trend": _jsonable(result.trend_details),
        "signals": _jsonable(result.signals),
        "fast_signals": _jsonable(result.fast_signals),
        "diagnostics": _jsonable(result.diagnostics),
        "validations": _jsonable(result.validations),
        "analytics": _jsonable(analytics),
    }


def _format_pct(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    if math.isinf(value):
        return "inf"
    return f"{value:+.2f}%"


def _format_ratio(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    if math.isinf(value):
        return "inf"
    return f"{value:.2f}"


def format_report(settings: Settings, result: StrategyResult, analytics: DecisionAnalytics) -> str:
    """Render a human-readable report."""
    details = result.trend_details
    lines = [
        f"Signalscope v{__version__} - {settings.trading_pair}",
        "=" * 50,
        f"Trend: {details.direction.value} (score {details.score:+d}, confidence {details.confidence}%)",
    ]
    for factor in details.factors:
        lines.append(f"  [{factor.contribution:+d}/{factor.weight}] {factor.label}: {factor.detail}")

    lines.append("")
    lines.append(f"Signals: {len(result.signals)} primary, {len(result.fast_signals)} fast")
    for signal in result.signals[-_RECENT_ITEMS:]:
        lines.append(f"  {signal.time} {signal.type.value:<5} @ {signal.price:,.2f}  {signal.reason}")
    for signal in result.fast_signals[-_RECENT_ITEMS:]:
        lines.append(f"  {signal.time} {signal.type.value:<5} @ {signal.price:,.2f}  (fast) {signal.reason}")

    near_misses = result.diagnostics.near_misses
    lines.append(f"Near-misses: {len(near_misses)}")
    for near_miss in near_misses[-_RECENT_ITEMS:]:
        lines.append(f"  {near_miss.time} {near_miss.bias.value:<5} missing: {', '.join(near_miss.missing)}")

    summary = analytics.summary
    if summary is not None:
        win_rate = f"{summary.win_rate}%" if summary.win_rate is not None else "n/a"
        lines.append("")
        lines.append(
            f"Validation: {summary.wins} wins, {summary.losses} losses, "
            f"{summary.pending} pending (win rate {win_rate})"
        )

    health = analytics.health
    if health is not None:
        correlation = analytics.analytics.correlation if analytics.analytics else None
        lines.extend([
            f"  Expectancy:    {_format_pct(health.expectancy)}",
            f"  Profit factor: {_format_ratio(health.profit_factor)}",
            f"  Max drawdown:  {_format_pct(health.max_drawdown)}",
            f"  Streaks:       {health.best_win_streak} wins / {health.best_loss_streak} losses",
            f"  Correlation:   {'n/a' if correlation is None else f'{correlation:.2f}'}",
        ])

    if analytics.patterns.patterns:
        lines.append("")
        lines.append("Patterns:")
        for pattern in analytics.patterns.patterns:
            lines.append(
                f"  {pattern.type.value:<5} x{pattern.occurrences} avg {_format_pct(pattern.average_return)} "
                f"win {pattern.win_rate}%  {pattern.label}"
            )

    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the signal report.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = create_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging()
        logger.error("analysis_failed", reason="invalid_settings", error=str(e))
        return 1

    setup_logging(
        log_level=args.log_level or settings.log_level,
        log_file=settings.log_file,
        json_format=settings.log_json,
    )

    try:
        if args.horizon is not None and args.horizon < 1:
            raise ValueError(f"--horizon must be at least 1, got {args.horizon}")

        if args.horizon is not None:
            settings = settings.model_copy(update={"validation_horizon": args.horizon})

        candles = load_candles_csv(args.candles)
        engine = SignalEngine.from_settings(settings)

        result = engine.run(candles)
        analytics = analyze_decisions(
            result.validations,
            result.signals,
            interval_ms=infer_interval_ms(candles, settings.candle_interval.value),
            min_occurrences=settings.pattern_min_occurrences,
            pattern_limit=settings.pattern_limit,
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error("analysis_failed", candles=args.candles, error=str(e))
        return 1

    if args.json:
        print(json.dumps(build_report(settings, result, analytics), indent=2))
    else:
        print(format_report(settings, result, analytics))

    return 0


if __name__ == "__main__":
    sys.exit(main())
