"""
Weighted combinator over child strategies.
confidence and target_position are weighted averages of the children's fields;
action is the weighted-majority action, ties resolve to hold.
"""

from __future__ import annotations
import inspect
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from strategy_backtester.core.errors import StrategyResolutionError
from strategy_backtester.core.types import PortfolioSnapshot, Signal, SignalAction, coerce_signal
from strategy_backtester.strategies.base import BaseStrategy, SignalResult

logger = logging.getLogger("strategy_backtester.strategies.mixed")

_TIE_EPS = 1e-12


class MixedStrategy(BaseStrategy):
    """Children are keyed by their `name`; weights default to an equal split."""

    name = "mixed"

    def __init__(
        self,
        children: Sequence[BaseStrategy],
        weights: Optional[Mapping[str, float]] = None,
        name: Optional[str] = None,
    ):
        if not children:
            raise StrategyResolutionError("mixed strategy needs at least one child")
        names = [c.name for c in children]
        if len(set(names)) != len(names):
            raise StrategyResolutionError(f"mixed strategy children must have unique names: {names}")
        self.children: List[BaseStrategy] = list(children)
        self.weights = self._normalise(names, weights)
        if name:
            self.name = name

    @staticmethod
    def _normalise(names: List[str], weights: Optional[Mapping[str, float]]) -> Dict[str, float]:
        if not weights:
            return {n: 1.0 / len(names) for n in names}
        unknown = set(weights) - set(names)
        if unknown:
            raise StrategyResolutionError(f"weights given for unknown children: {sorted(unknown)}")
        raw = {n: float(weights.get(n, 0.0)) for n in names}
        if any(w < 0 for w in raw.values()):
            raise StrategyResolutionError("mixed strategy weights must be non-negative")
        total = sum(raw.values())
        if total <= 0:
            raise StrategyResolutionError("mixed strategy weights must sum to a positive value")
        return {n: w / total for n, w in raw.items()}

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        for child in self.children:
            df = child.compute_indicators(df)
        return df

    def _child_call(self, child: BaseStrategy, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> Any:
        try:
            return child.generate_signal(window, on_date, portfolio)
        except Exception as e:
            logger.warning("%s: child %s failed, counted as hold: %s", on_date, child.name, e)
            return Signal.neutral(f"{child.name} failed: {e}")

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> SignalResult:
        raw = [self._child_call(c, window, on_date, portfolio) for c in self.children]
        if not any(inspect.isawaitable(r) for r in raw):
            return self.combine(raw)

        async def _resolve() -> Signal:
            resolved = []
            for child, r in zip(self.children, raw):
                if inspect.isawaitable(r):
                    try:
                        r = await r
                    except Exception as e:
                        logger.warning("%s: child %s failed, counted as hold: %s", on_date, child.name, e)
                        r = Signal.neutral(f"{child.name} failed: {e}")
                resolved.append(r)
            return self.combine(resolved)

        return _resolve()

    def combine(self, raw_signals: Sequence[Any]) -> Signal:
        """Weighted merge of one signal per child, in child order."""
        signals = []
        for child, raw in zip(self.children, raw_signals):
            try:
                signals.append(coerce_signal(raw))
            except (TypeError, ValueError) as e:
                logger.warning("child %s returned an unusable signal: %s", child.name, e)
                signals.append(Signal.neutral())

        tally = {a: 0.0 for a in SignalAction}
        confidence = 0.0
        target_sum = 0.0
        target_weight = 0.0
        components = {}
        for child, sig in zip(self.children, signals):
            w = self.weights[child.name]
            tally[sig.action] += w
            confidence += w * sig.confidence
            if sig.target_position is not None:
                target_sum += w * sig.target_position
                target_weight += w
            components[child.name] = {"action": sig.action.value, "confidence": sig.confidence}

        best = max(tally.values())
        leaders = [a for a, score in tally.items() if best - score <= _TIE_EPS]
        action = leaders[0] if len(leaders) == 1 else SignalAction.HOLD
        target = target_sum / target_weight if target_weight > 0 else None
        reasoning = "; ".join(f"{n}: {c['action']}" for n, c in components.items())
        return Signal(
            action=action,
            confidence=confidence,
            target_position=target,
            reasoning=reasoning,
            metadata={"components": components, "weights": dict(self.weights)},
        )
