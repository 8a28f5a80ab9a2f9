"""
Historical validation module for signal quality.

Scores past signals against the price action that followed them and
aggregates the outcomes into health and pattern analytics.
"""

from signalscope.backtest.decision_validator import DecisionValidation, Outcome, validate_decisions
from signalscope.backtest.analytics import DecisionAnalytics, analyze_decisions

__all__ = ["DecisionValidation", "Outcome", "validate_decisions", "DecisionAnalytics", "analyze_decisions"]
