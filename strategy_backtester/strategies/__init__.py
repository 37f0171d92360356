"""Strategies: base interface, rule variants, combinator and factory."""

from strategy_backtester.strategies.advisor import AdvisorStrategy
from strategy_backtester.strategies.base import BaseStrategy, CallableStrategy
from strategy_backtester.strategies.decorators import ReasoningParserStrategy, SignalTransformStrategy
from strategy_backtester.strategies.factory import (
    DEFAULT_MIXED_COMPONENTS,
    StrategyKind,
    as_strategy,
    create_strategy,
)
from strategy_backtester.strategies.mixed import MixedStrategy
from strategy_backtester.strategies.parsing import ParsedReasoning, keyword_signal, parse_reasoning
from strategy_backtester.strategies.rules import (
    GrowthStrategy,
    QuantStrategy,
    RiskManagedStrategy,
    SentimentStrategy,
    TrendStrategy,
    ValueStrategy,
)

__all__ = [
    "AdvisorStrategy",
    "BaseStrategy",
    "CallableStrategy",
    "DEFAULT_MIXED_COMPONENTS",
    "GrowthStrategy",
    "MixedStrategy",
    "ParsedReasoning",
    "QuantStrategy",
    "ReasoningParserStrategy",
    "RiskManagedStrategy",
    "SentimentStrategy",
    "SignalTransformStrategy",
    "StrategyKind",
    "TrendStrategy",
    "ValueStrategy",
    "as_strategy",
    "create_strategy",
    "keyword_signal",
    "parse_reasoning",
]
