"""Core: config, types, errors, logging."""

from strategy_backtester.core.config import load_config, Config
from strategy_backtester.core.errors import BacktestError, ConfigurationError, StrategyResolutionError
from strategy_backtester.core.types import (
    EquityPoint,
    PortfolioSnapshot,
    Position,
    PriceBar,
    Signal,
    SignalAction,
    Trade,
    TradeType,
    coerce_signal,
    to_date,
)
from strategy_backtester.core.logger import setup_logging

__all__ = [
    "load_config",
    "Config",
    "BacktestError",
    "ConfigurationError",
    "StrategyResolutionError",
    "EquityPoint",
    "PortfolioSnapshot",
    "Position",
    "PriceBar",
    "Signal",
    "SignalAction",
    "Trade",
    "TradeType",
    "coerce_signal",
    "to_date",
    "setup_logging",
]
