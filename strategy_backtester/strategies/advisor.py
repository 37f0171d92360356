"""
Strategy backed by an external reasoning service (e.g. an LLM agent).
The advisor receives the window, the date and the portfolio and answers in free
text; building its prompt is the advisor's business.
"""

from __future__ import annotations
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Union

import pandas as pd

from strategy_backtester.core.types import PortfolioSnapshot, Signal
from strategy_backtester.strategies.base import BaseStrategy, SignalResult, then
from strategy_backtester.strategies.parsing import keyword_signal

logger = logging.getLogger("strategy_backtester.strategies.advisor")

Advisor = Callable[[pd.DataFrame, date, PortfolioSnapshot], Union[str, Awaitable[str]]]


class AdvisorStrategy(BaseStrategy):
    """Keyword-level reading of the advisor's answer; the full text is kept as reasoning."""

    def __init__(self, advisor: Advisor, name: str = "advisor", default_confidence: float = 0.5):
        self.advisor = advisor
        self.name = name
        self.default_confidence = default_confidence

    def _to_signal(self, text: Any) -> Signal:
        text = "" if text is None else str(text)
        parsed = keyword_signal(text, self.default_confidence)
        logger.debug("%s advisor -> %s: %.80s", self.name, parsed.action.value, text)
        return Signal(
            action=parsed.action,
            confidence=parsed.confidence or 0.0,
            target_position=parsed.position,
            reasoning=text or None,
            metadata={"advisor": self.name},
        )

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> SignalResult:
        return then(self.advisor(window, on_date, portfolio), self._to_signal)
