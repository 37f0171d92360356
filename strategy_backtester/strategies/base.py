"""Abstract strategy: causal indicators + one signal per day."""

from __future__ import annotations
import inspect
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Union

import pandas as pd

from strategy_backtester.core.types import PortfolioSnapshot, Signal

SignalResult = Union[Signal, Awaitable[Signal]]


def then(result: Any, fn: Callable[[Any], Any]) -> Any:
    """Apply fn to a value, or chain it onto an awaitable without blocking."""
    if inspect.isawaitable(result):
        async def _chain() -> Any:
            return fn(await result)
        return _chain()
    return fn(result)


class BaseStrategy(ABC):
    """
    A strategy sees only the window of bars up to and including `on_date`.
    generate_signal may return a Signal or an awaitable resolving to one.
    """

    name: str = "strategy"

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        """Add causal indicator columns to the full frame. Default: none."""
        return df

    @abstractmethod
    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> SignalResult:
        """Signal for `on_date`; `window.iloc[-1]` is today's bar."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class CallableStrategy(BaseStrategy):
    """Adapts a plain `fn(window, on_date, portfolio)` handle."""

    def __init__(self, fn: Callable[..., Any], name: Optional[str] = None):
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "callable")

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> SignalResult:
        return self.fn(window, on_date, portfolio)
