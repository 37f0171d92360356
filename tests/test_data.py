"""Tests for data: frame preparation, CSV and synthetic sources, indicators."""

from datetime import date

import numpy as np
import pandas as pd
import pytest
from strategy_backtester.core.errors import ConfigurationError
from strategy_backtester.core.types import PriceBar
from strategy_backtester.data.base import CsvMarketData, frame_to_bars, prepare_price_frame
from strategy_backtester.data.indicators import bollinger_bands, rolling_volatility, rsi, sma
from strategy_backtester.data.synthetic import SyntheticMarketData


def test_prepare_fills_missing_columns():
    df = prepare_price_frame(pd.DataFrame({"date": ["2024-01-02", "2024-01-03"], "close": [10.0, 11.0]}))
    assert list(df.columns[:6]) == ["date", "open", "high", "low", "close", "volume"]
    assert df["open"].tolist() == [10.0, 11.0]
    assert df["volume"].tolist() == [0.0, 0.0]


def test_prepare_accepts_bars_and_does_not_mutate_input():
    bars = [PriceBar(date(2024, 1, 2), 1, 2, 0.5, 1.5, 100), PriceBar(date(2024, 1, 3), 1.5, 2, 1, 1.8, 50)]
    df = prepare_price_frame(bars)
    assert [b.close for b in frame_to_bars(df)] == [1.5, 1.8]
    raw = pd.DataFrame({"date": ["2024-01-02"], "close": [1.0]})
    prepare_price_frame(raw)
    assert list(raw.columns) == ["date", "close"]


def test_prepare_rejects_bad_input():
    with pytest.raises(ConfigurationError):
        prepare_price_frame(pd.DataFrame({"date": ["2024-01-02"]}))
    with pytest.raises(ConfigurationError):
        prepare_price_frame(pd.DataFrame({"date": ["2024-01-02", "2024-01-02"], "close": [1.0, 2.0]}))
    with pytest.raises(ConfigurationError):
        prepare_price_frame(pd.DataFrame({"date": ["2024-01-02"], "close": [np.nan]}))


def test_csv_market_data(tmp_path):
    (tmp_path / "AAPL.csv").write_text(
        "Date,Open,High,Low,Close,Volume\n"
        "2024-01-02,10,11,9,10.5,100\n"
        "2024-01-03,10.5,12,10,11.5,200\n"
        "2024-01-04,11.5,12,11,11.0,150\n",
        encoding="utf-8",
    )
    df = CsvMarketData(tmp_path).get_price_history("aapl", "2024-01-03", "2024-01-03")
    # earlier bars stay as history; later ones are cut
    assert len(df) == 2
    with pytest.raises(ConfigurationError):
        CsvMarketData(tmp_path).get_price_history("MSFT", "2024-01-01", "2024-01-31")


def test_synthetic_is_deterministic_weekday_series():
    source = SyntheticMarketData()
    a = source.get_price_history("AAPL", "2024-01-01", "2024-03-01")
    b = source.get_price_history("AAPL", "2024-01-01", "2024-03-01")
    pd.testing.assert_frame_equal(a, b)
    assert (a["date"].dt.dayofweek < 5).all()
    assert a["sentiment"].between(-1, 1).all()
    assert (a["close"] > 0).all()
    assert source.fundamentals("AAPL") == source.fundamentals("AAPL")


def test_indicators_are_causal():
    close = pd.Series([float(x) for x in range(1, 41)])
    full = sma(close, 5)
    partial = sma(close.iloc[:20], 5)
    assert full.iloc[:20].equals(partial)
    assert full.iloc[4] == pytest.approx(3.0)
    assert rsi(close, 14).iloc[-1] == 100.0
    mid, upper, lower = bollinger_bands(close, 20, 2.0)
    assert (upper.dropna() >= lower.dropna()).all()
    assert rolling_volatility(pd.Series([100.0] * 25), 20).iloc[-1] == pytest.approx(0.0, abs=1e-12)
