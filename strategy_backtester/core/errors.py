"""Error types raised before a run starts. Per-day failures are never raised."""

from __future__ import annotations


class BacktestError(Exception):
    """Base error for the backtester."""


class ConfigurationError(BacktestError, ValueError):
    """Invalid run request: dates, capital, price series or columns."""


class StrategyResolutionError(ConfigurationError):
    """Unknown strategy kind, unusable handle or invalid combinator weights."""
