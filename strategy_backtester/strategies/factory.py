"""
Closed set of strategy kinds and the factory that builds them.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from strategy_backtester.core.errors import StrategyResolutionError
from strategy_backtester.strategies.advisor import Advisor, AdvisorStrategy
from strategy_backtester.strategies.base import BaseStrategy, CallableStrategy
from strategy_backtester.strategies.decorators import ReasoningParserStrategy
from strategy_backtester.strategies.mixed import MixedStrategy
from strategy_backtester.strategies.rules import (
    GrowthStrategy,
    QuantStrategy,
    RiskManagedStrategy,
    SentimentStrategy,
    TrendStrategy,
    ValueStrategy,
)


class StrategyKind(str, Enum):
    VALUE = "value"
    GROWTH = "growth"
    TREND = "trend"
    QUANT = "quant"
    SENTIMENT = "sentiment"
    RISK_MANAGED = "riskManaged"
    MIXED = "mixed"

    @classmethod
    def parse(cls, value: Union[str, "StrategyKind"]) -> "StrategyKind":
        """Case, underscore and hyphen insensitive: 'risk_managed' -> RISK_MANAGED."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("_", "").replace("-", "")
        for kind in cls:
            if kind.value.lower() == key:
                return kind
        raise StrategyResolutionError(
            f"Unknown strategy kind {value!r}; expected one of {[k.value for k in cls]}"
        )


_RULES = {
    StrategyKind.VALUE: ValueStrategy,
    StrategyKind.GROWTH: GrowthStrategy,
    StrategyKind.TREND: TrendStrategy,
    StrategyKind.QUANT: QuantStrategy,
    StrategyKind.SENTIMENT: SentimentStrategy,
    StrategyKind.RISK_MANAGED: RiskManagedStrategy,
}

DEFAULT_MIXED_COMPONENTS = (
    StrategyKind.VALUE,
    StrategyKind.TREND,
    StrategyKind.SENTIMENT,
    StrategyKind.RISK_MANAGED,
)


def create_strategy(
    kind: Union[str, StrategyKind],
    params: Optional[Mapping[str, Any]] = None,
    advisor: Optional[Advisor] = None,
    weights: Optional[Mapping[str, float]] = None,
    components: Optional[Sequence[Union[str, StrategyKind]]] = None,
    child_params: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> BaseStrategy:
    """
    Build a strategy of the given kind.

    params go to the rule strategy's constructor. With an advisor the kind is
    answered by the advisor instead; the trend variant additionally re-parses the
    advisor's reasoning. mixed builds `components` (default value, trend,
    sentiment, riskManaged) with `child_params[kind]` and combines them by `weights`.
    """
    kind = StrategyKind.parse(kind)
    if kind is StrategyKind.MIXED:
        params = dict(params or {})
        components = components or params.get("components") or DEFAULT_MIXED_COMPONENTS
        parts = [StrategyKind.parse(c) for c in components]
        if StrategyKind.MIXED in parts:
            raise StrategyResolutionError("mixed strategy cannot contain another mixed strategy")
        child_params = child_params or {}
        children = [
            create_strategy(part, child_params.get(part.value), advisor=advisor)
            for part in parts
        ]
        return MixedStrategy(children, weights=weights or params.get("weights"), name=params.get("name"))

    if advisor is not None:
        strategy: BaseStrategy = AdvisorStrategy(advisor, name=kind.value)
        if kind is StrategyKind.TREND:
            strategy = ReasoningParserStrategy(strategy)
        return strategy

    cls = _RULES[kind]
    try:
        return cls(**dict(params or {}))
    except TypeError as e:
        raise StrategyResolutionError(f"Invalid parameters for {kind.value} strategy: {e}") from e


def as_strategy(
    handle: Any,
    params: Optional[Mapping[str, Any]] = None,
    name: Optional[str] = None,
    all_params: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> BaseStrategy:
    """
    Resolve a strategy instance, a kind name or a plain callable into a BaseStrategy.
    For kind names, `params` defaults to `all_params[kind]`; mixed children also
    draw their params from `all_params`.
    """
    if isinstance(handle, BaseStrategy):
        return handle
    if isinstance(handle, (str, StrategyKind)):
        if params is None:
            params = strategy_params_for(handle, all_params)
        return create_strategy(handle, params, child_params=all_params)
    if callable(handle):
        return CallableStrategy(handle, name=name)
    raise StrategyResolutionError(f"Cannot resolve a strategy from {type(handle).__name__}")


def strategy_params_for(kind: Union[str, StrategyKind], all_params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Per-kind constructor params out of a {kind: params} mapping; {} when absent."""
    if not all_params:
        return {}
    try:
        key = StrategyKind.parse(kind).value
    except StrategyResolutionError:
        return {}
    return dict(all_params.get(key, {}) or {})
