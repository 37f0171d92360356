"""Backtesting: daily engine and multi-strategy comparison."""

from strategy_backtester.backtesting.comparison import (
    ComparisonHarness,
    ComparisonRequest,
    ComparisonResult,
    NamedStrategy,
    StrategySummary,
    align_equity_curves,
    compare_strategies,
)
from strategy_backtester.backtesting.engine import BacktestEngine, BacktestResult, RunDiagnostics

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "ComparisonHarness",
    "ComparisonRequest",
    "ComparisonResult",
    "NamedStrategy",
    "RunDiagnostics",
    "StrategySummary",
    "align_equity_curves",
    "compare_strategies",
]
