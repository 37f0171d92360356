"""
Deterministic synthetic market data: ticker-seeded sinusoidal drift on weekdays.
Same ticker and range always give the same series.
"""

from __future__ import annotations
import math
from typing import Any, Dict

import numpy as np
import pandas as pd

from strategy_backtester.core.errors import ConfigurationError
from strategy_backtester.core.types import to_date
from strategy_backtester.data.base import MarketDataSource, prepare_price_frame


def ticker_seed(ticker: str) -> int:
    return sum(ord(c) for c in ticker.upper())


class SyntheticMarketData(MarketDataSource):
    """Daily bars plus a `sentiment` column in [-1, 1]."""

    def __init__(
        self,
        initial_price: float = 100.0,
        volatility: float = 0.015,
        trend: float = 0.0002,
        with_sentiment: bool = True,
    ):
        self.initial_price = initial_price
        self.volatility = volatility
        self.trend = trend
        self.with_sentiment = with_sentiment

    def get_price_history(self, ticker: str, start: Any, end: Any) -> pd.DataFrame:
        start_d, end_d = to_date(start), to_date(end)
        if end_d < start_d:
            raise ConfigurationError(f"end {end_d} is before start {start_d}")
        seed = ticker_seed(ticker)
        days = pd.date_range(start_d, end_d, freq="D")
        rows = []
        price = self.initial_price
        for i, day in enumerate(days):
            if day.dayofweek >= 5:
                continue
            phase = (seed + i) / 1000.0
            price = max(0.1, price * (1 + math.sin(phase * 37.0) * self.volatility + self.trend))
            wiggle = abs(math.sin(phase * 91.0)) * self.volatility
            high = price * (1 + wiggle)
            low = price * (1 - wiggle)
            open_ = low + (high - low) * (0.5 + 0.5 * math.sin(phase * 13.0))
            row = {
                "date": day,
                "open": round(open_, 2),
                "high": round(high, 2),
                "low": round(low, 2),
                "close": round(price, 2),
                "volume": float(500_000 + (seed * 7919 + i * 104_729) % 1_000_000),
            }
            if self.with_sentiment:
                row["sentiment"] = round(float(np.clip(math.sin(phase * 23.0) * 0.9, -1.0, 1.0)), 3)
            rows.append(row)
        if not rows:
            raise ConfigurationError(f"No trading days between {start_d} and {end_d}")
        return prepare_price_frame(pd.DataFrame(rows))

    def fundamentals(self, ticker: str) -> Dict[str, float]:
        """Stable per-ticker valuation figures."""
        seed = ticker_seed(ticker)

        def unit(offset: int) -> float:
            return ((seed + offset) % 100) / 100.0

        return {
            "pe_ratio": round(10 + unit(1) * 25, 2),
            "pb_ratio": round(0.5 + unit(2) * 6, 2),
            "dividend_yield": round(unit(3) * 0.06, 4),
            "eps_growth": round((unit(4) - 0.3) * 0.4, 4),
            "profit_margin": round(0.05 + unit(5) * 0.25, 4),
            "debt_to_equity": round(unit(7) * 2, 2),
        }
