"""
Causal technical indicators on a close series. Value at row i uses rows <= i only,
so columns computed over the full frame stay valid inside a truncated window.
"""

from __future__ import annotations
from typing import Tuple

import numpy as np
import pandas as pd


def sma(close: pd.Series, period: int) -> pd.Series:
    return close.rolling(period, min_periods=period).mean()


def rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """Simple-average RSI. 100 when the lookback has no losses."""
    delta = close.diff()
    gains = delta.clip(lower=0).rolling(period, min_periods=period).sum()
    losses = (-delta).clip(lower=0).rolling(period, min_periods=period).sum()
    rs = gains / losses.replace(0, np.nan)
    out = 100 - (100 / (1 + rs))
    return out.where(losses != 0, 100.0).where(gains.notna())


def bollinger_bands(close: pd.Series, period: int = 20, deviation: float = 2.0) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """(middle, upper, lower) with population standard deviation."""
    middle = sma(close, period)
    std = close.rolling(period, min_periods=period).std(ddof=0)
    return middle, middle + deviation * std, middle - deviation * std


def rolling_volatility(close: pd.Series, period: int = 20) -> pd.Series:
    """Relative volatility: rolling std / rolling mean of price."""
    mean = close.rolling(period, min_periods=period).mean()
    std = close.rolling(period, min_periods=period).std(ddof=0)
    return std / mean.replace(0, np.nan)
