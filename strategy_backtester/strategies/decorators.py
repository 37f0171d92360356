"""
Signal post-processing by composition. A wrapper satisfies BaseStrategy and
never modifies the strategy it wraps.
"""

from __future__ import annotations
import logging
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Optional

import pandas as pd

from strategy_backtester.core.types import PortfolioSnapshot, Signal, coerce_signal
from strategy_backtester.strategies.base import BaseStrategy, SignalResult, then
from strategy_backtester.strategies.parsing import parse_reasoning

logger = logging.getLogger("strategy_backtester.strategies.decorators")


class SignalTransformStrategy(BaseStrategy):
    """Calls the inner strategy and passes its signal through `transform`."""

    def __init__(self, inner: BaseStrategy, transform: Callable[[Signal], Signal], name: Optional[str] = None):
        self.inner = inner
        self.transform = transform
        self.name = name or inner.name

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.inner.compute_indicators(df)

    def _apply(self, raw: Any) -> Signal:
        return self.transform(coerce_signal(raw))

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> SignalResult:
        return then(self.inner.generate_signal(window, on_date, portfolio), self._apply)


def reparse_reasoning(signal: Signal) -> Signal:
    """Replace action/confidence/target with what the reasoning text states."""
    if not signal.reasoning:
        return signal
    try:
        parsed = parse_reasoning(signal.reasoning)
    except ValueError as e:
        logger.warning("Could not parse strategy reasoning, keeping raw signal: %s", e)
        return signal
    return replace(
        signal,
        action=parsed.action,
        confidence=parsed.confidence if parsed.confidence is not None else signal.confidence,
        target_position=parsed.position if parsed.position is not None else signal.target_position,
        metadata={**signal.metadata, "reparsed": True},
    )


class ReasoningParserStrategy(SignalTransformStrategy):
    """Re-reads free-text reasoning into structured action, confidence and position."""

    def __init__(self, inner: BaseStrategy, name: Optional[str] = None):
        super().__init__(inner, reparse_reasoning, name)
