"""
Rule-based strategy variants: value, growth (momentum), trend, quant (mean reversion),
sentiment and risk-managed. Deterministic; read only the window they are given.
Buys carry the strategy's confidence; sells target a flat position.
"""

from __future__ import annotations
import math
from datetime import date
from typing import Any, Mapping, Optional, Tuple

import pandas as pd

from strategy_backtester.core.types import PortfolioSnapshot, Signal, SignalAction, to_date
from strategy_backtester.data.indicators import bollinger_bands, rolling_volatility, rsi, sma
from strategy_backtester.strategies.base import BaseStrategy


def _last_two(window: pd.DataFrame, column: str) -> Optional[Tuple[float, float]]:
    if column not in window.columns or len(window) < 2:
        return None
    prev, cur = window[column].iloc[-2], window[column].iloc[-1]
    if pd.isna(prev) or pd.isna(cur):
        return None
    return float(prev), float(cur)


def _last(window: pd.DataFrame, column: str, default: float) -> float:
    if column not in window.columns or len(window) == 0:
        return default
    value = window[column].iloc[-1]
    return default if pd.isna(value) else float(value)


class RuleStrategy(BaseStrategy):
    """Shared signal constructors for the rule variants."""

    name = "rule"

    def __init__(self, confidence: float = 0.8, name: Optional[str] = None):
        self.confidence = confidence
        if name:
            self.name = name

    def _buy(self, reason: str, target: Optional[float] = None, **meta: Any) -> Signal:
        return Signal(SignalAction.BUY, self.confidence, target_position=target, reasoning=reason, metadata=meta)

    def _sell(self, reason: str, **meta: Any) -> Signal:
        return Signal(SignalAction.SELL, self.confidence, target_position=0.0, reasoning=reason, metadata=meta)

    def _hold(self, reason: str = "", **meta: Any) -> Signal:
        return Signal(SignalAction.HOLD, 0.0, reasoning=reason or None, metadata=meta)


class ValueStrategy(RuleStrategy):
    """
    Buy cheap names on down days (P/E and P/B below thresholds); exit when either
    multiple is stretched. Fundamentals come from the constructor or from
    `pe_ratio` / `pb_ratio` columns in the window.
    """

    name = "value"

    def __init__(
        self,
        fundamentals: Optional[Mapping[str, float]] = None,
        pe_buy_max: float = 15.0,
        pb_buy_max: float = 1.5,
        pe_sell_min: float = 25.0,
        pb_sell_min: float = 3.0,
        confidence: float = 0.8,
        name: Optional[str] = None,
    ):
        super().__init__(confidence, name)
        self.fundamentals = dict(fundamentals) if fundamentals else None
        self.pe_buy_max = pe_buy_max
        self.pb_buy_max = pb_buy_max
        self.pe_sell_min = pe_sell_min
        self.pb_sell_min = pb_sell_min

    def _valuation(self, window: pd.DataFrame) -> Optional[Tuple[float, float]]:
        if self.fundamentals and "pe_ratio" in self.fundamentals and "pb_ratio" in self.fundamentals:
            return float(self.fundamentals["pe_ratio"]), float(self.fundamentals["pb_ratio"])
        pe = _last(window, "pe_ratio", math.nan)
        pb = _last(window, "pb_ratio", math.nan)
        if math.isnan(pe) or math.isnan(pb):
            return None
        return pe, pb

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> Signal:
        closes = _last_two(window, "close")
        valuation = self._valuation(window)
        if closes is None or valuation is None:
            return self._hold("insufficient data")
        pe, pb = valuation
        falling = closes[1] < closes[0]
        if falling and pe < self.pe_buy_max and pb < self.pb_buy_max:
            return self._buy(f"undervalued on a down day (P/E {pe:.1f}, P/B {pb:.2f})", pe=pe, pb=pb)
        if pe > self.pe_sell_min or pb > self.pb_sell_min:
            return self._sell(f"overvalued (P/E {pe:.1f}, P/B {pb:.2f})", pe=pe, pb=pb)
        return self._hold(pe=pe, pb=pb)


class GrowthStrategy(RuleStrategy):
    """Momentum: golden cross of short/long SMA while RSI is not overbought."""

    name = "growth"

    def __init__(
        self,
        ma_short: int = 20,
        ma_long: int = 50,
        rsi_len: int = 14,
        rsi_overbought: float = 70.0,
        confidence: float = 0.8,
        name: Optional[str] = None,
    ):
        super().__init__(confidence, name)
        self.ma_short = ma_short
        self.ma_long = ma_long
        self.rsi_len = rsi_len
        self.rsi_overbought = rsi_overbought

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df[f"sma_{self.ma_short}"] = sma(df["close"], self.ma_short)
        df[f"sma_{self.ma_long}"] = sma(df["close"], self.ma_long)
        df[f"rsi_{self.rsi_len}"] = rsi(df["close"], self.rsi_len)
        return df

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> Signal:
        short = _last_two(window, f"sma_{self.ma_short}")
        long_ = _last_two(window, f"sma_{self.ma_long}")
        if short is None or long_ is None:
            return self._hold("warming up")
        r = _last(window, f"rsi_{self.rsi_len}", 50.0)
        cross_up = short[0] <= long_[0] and short[1] > long_[1]
        cross_down = short[0] >= long_[0] and short[1] < long_[1]
        if cross_up and r < self.rsi_overbought:
            return self._buy("golden cross with RSI below overbought", rsi=r)
        if cross_down or r > self.rsi_overbought:
            return self._sell("death cross" if cross_down else "RSI overbought", rsi=r)
        return self._hold(rsi=r)


class TrendStrategy(RuleStrategy):
    """SMA crossover first, then RSI extremes."""

    name = "trend"

    def __init__(
        self,
        ma_short: int = 20,
        ma_long: int = 60,
        rsi_len: int = 14,
        rsi_overbought: float = 70.0,
        rsi_oversold: float = 30.0,
        confidence: float = 0.8,
        name: Optional[str] = None,
    ):
        super().__init__(confidence, name)
        self.ma_short = ma_short
        self.ma_long = ma_long
        self.rsi_len = rsi_len
        self.rsi_overbought = rsi_overbought
        self.rsi_oversold = rsi_oversold

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df[f"sma_{self.ma_short}"] = sma(df["close"], self.ma_short)
        df[f"sma_{self.ma_long}"] = sma(df["close"], self.ma_long)
        df[f"rsi_{self.rsi_len}"] = rsi(df["close"], self.rsi_len)
        return df

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> Signal:
        short = _last_two(window, f"sma_{self.ma_short}")
        long_ = _last_two(window, f"sma_{self.ma_long}")
        if short is not None and long_ is not None:
            if short[0] < long_[0] and short[1] > long_[1]:
                return self._buy(f"sma_{self.ma_short} crossed above sma_{self.ma_long}")
            if short[0] > long_[0] and short[1] < long_[1]:
                return self._sell(f"sma_{self.ma_short} crossed below sma_{self.ma_long}")
        r = _last(window, f"rsi_{self.rsi_len}", math.nan)
        if not math.isnan(r):
            if r > self.rsi_overbought:
                return self._sell("RSI overbought", rsi=r)
            if r < self.rsi_oversold:
                return self._buy("RSI oversold", rsi=r)
        return self._hold()


class QuantStrategy(RuleStrategy):
    """Bollinger-band mean reversion: re-entry through a band is the signal."""

    name = "quant"

    def __init__(self, period: int = 20, deviation: float = 2.0, confidence: float = 0.8, name: Optional[str] = None):
        super().__init__(confidence, name)
        self.period = period
        self.deviation = deviation

    @property
    def _upper_col(self) -> str:
        return f"bb_upper_{self.period}_{self.deviation:g}"

    @property
    def _lower_col(self) -> str:
        return f"bb_lower_{self.period}_{self.deviation:g}"

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        _, upper, lower = bollinger_bands(df["close"], self.period, self.deviation)
        df[self._upper_col] = upper
        df[self._lower_col] = lower
        return df

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> Signal:
        closes = _last_two(window, "close")
        upper = _last_two(window, self._upper_col)
        lower = _last_two(window, self._lower_col)
        if closes is None or upper is None or lower is None:
            return self._hold("warming up")
        if closes[0] < lower[0] and closes[1] > lower[1]:
            return self._buy("close crossed back above lower band")
        if closes[0] > upper[0] and closes[1] < upper[1]:
            return self._sell("close crossed back below upper band")
        return self._hold()


class SentimentStrategy(RuleStrategy):
    """
    Mean of the most recent `lookback` sentiment scores dated on or before today.
    Scores come from a {date: score} mapping or the window's `sentiment` column.
    """

    name = "sentiment"

    def __init__(
        self,
        scores: Optional[Mapping[Any, float]] = None,
        lookback: int = 5,
        buy_above: float = 0.6,
        sell_below: float = -0.3,
        column: str = "sentiment",
        confidence: float = 0.8,
        name: Optional[str] = None,
    ):
        super().__init__(confidence, name)
        self.scores = {to_date(k): float(v) for k, v in scores.items()} if scores else None
        self.lookback = lookback
        self.buy_above = buy_above
        self.sell_below = sell_below
        self.column = column

    def _recent_scores(self, window: pd.DataFrame, on_date: date) -> list:
        if self.scores is not None:
            dated = sorted((d for d in self.scores if d <= on_date), reverse=True)[: self.lookback]
            return [self.scores[d] for d in dated]
        if self.column not in window.columns:
            return []
        return window[self.column].dropna().tail(self.lookback).astype(float).tolist()

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> Signal:
        recent = self._recent_scores(window, on_date)
        if not recent:
            return self._hold("no sentiment data")
        score = sum(recent) / len(recent)
        if score > self.buy_above:
            return self._buy(f"positive sentiment {score:.2f}", score=score)
        if score < self.sell_below:
            return self._sell(f"negative sentiment {score:.2f}", score=score)
        return self._hold(score=score)


class RiskManagedStrategy(RuleStrategy):
    """
    Volatility regimes over the last `vol_window` closes: enter in calm uptrends,
    exit on high volatility, near the recent low, or near the recent high when
    volatility is rising. With target_volatility set, buys size to
    min(1, target_volatility / volatility).
    """

    name = "riskManaged"

    def __init__(
        self,
        vol_window: int = 20,
        range_window: int = 10,
        low_volatility: float = 0.05,
        high_volatility: float = 0.10,
        take_profit_volatility: float = 0.08,
        target_volatility: Optional[float] = None,
        confidence: float = 0.8,
        name: Optional[str] = None,
    ):
        super().__init__(confidence, name)
        self.vol_window = vol_window
        self.range_window = range_window
        self.low_volatility = low_volatility
        self.high_volatility = high_volatility
        self.take_profit_volatility = take_profit_volatility
        self.target_volatility = target_volatility

    @property
    def _vol_col(self) -> str:
        return f"volatility_{self.vol_window}"

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df[self._vol_col] = rolling_volatility(df["close"], self.vol_window)
        return df

    def generate_signal(self, window: pd.DataFrame, on_date: date, portfolio: PortfolioSnapshot) -> Signal:
        if len(window) < self.vol_window:
            return self._hold("warming up")
        vol = _last(window, self._vol_col, math.nan)
        if math.isnan(vol):
            return self._hold("warming up")
        mean = float(window["close"].tail(self.vol_window).mean())
        recent = window.tail(self.range_window)
        highest = float(recent["high"].max())
        lowest = float(recent["low"].min())
        close = float(window["close"].iloc[-1])

        if vol < self.low_volatility and close > mean * 1.05:
            target = None
            if self.target_volatility and vol > 0:
                target = min(1.0, self.target_volatility / vol)
            return self._buy("calm uptrend", target=target, volatility=vol)
        if vol > self.high_volatility or close < lowest * 1.02:
            return self._sell("volatility spike or near recent low", volatility=vol)
        if close > highest * 0.95 and vol > self.take_profit_volatility:
            return self._sell("near recent high with rising volatility", volatility=vol)
        return self._hold(volatility=vol)
