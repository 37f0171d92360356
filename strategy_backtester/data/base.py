"""Market data contract and price frame helpers."""

from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

import pandas as pd

from strategy_backtester.core.errors import ConfigurationError
from strategy_backtester.core.types import PriceBar, to_date

PRICE_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


class MarketDataSource(ABC):
    """Supplies an ordered daily OHLCV series, optionally with indicator columns."""

    @abstractmethod
    def get_price_history(self, ticker: str, start: Any, end: Any) -> pd.DataFrame:
        """Return a DataFrame with columns: date, open, high, low, close, volume."""
        pass


def bars_to_frame(bars: Iterable[PriceBar]) -> pd.DataFrame:
    rows = [
        {"date": b.date, "open": b.open, "high": b.high, "low": b.low, "close": b.close, "volume": b.volume}
        for b in bars
    ]
    return pd.DataFrame(rows, columns=PRICE_COLUMNS)


def frame_to_bars(df: pd.DataFrame) -> List[PriceBar]:
    return [
        PriceBar(
            date=to_date(row.date),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]


def prepare_price_frame(prices: Union[pd.DataFrame, Sequence[PriceBar]]) -> pd.DataFrame:
    """
    Normalise a price series into a fresh DataFrame with a Timestamp `date` column.
    Missing open/high/low fall back to close, missing volume to 0.
    Raises ConfigurationError on missing columns, empty input or unordered dates.
    """
    if isinstance(prices, pd.DataFrame):
        df = prices.copy()
    else:
        df = bars_to_frame(prices)
    if "date" not in df.columns and df.index.name == "date":
        df = df.reset_index()
    missing = [c for c in ("date", "close") if c not in df.columns]
    if missing:
        raise ConfigurationError(f"Price series is missing required columns: {', '.join(missing)}")
    if df.empty:
        raise ConfigurationError("Price series is empty")
    dates = pd.to_datetime(df["date"])
    if dates.dt.tz is not None:
        dates = dates.dt.tz_localize(None)
    df["date"] = dates.dt.normalize()
    df["close"] = df["close"].astype(float)
    for col in ("open", "high", "low"):
        if col not in df.columns:
            df[col] = df["close"]
        df[col] = df[col].fillna(df["close"]).astype(float)
    if "volume" not in df.columns:
        df["volume"] = 0.0
    df["volume"] = df["volume"].fillna(0.0).astype(float)
    if df["close"].isna().any():
        raise ConfigurationError("Price series contains bars without a close price")
    if not (df["date"].is_monotonic_increasing and df["date"].is_unique):
        raise ConfigurationError("Price bars must be strictly increasing by date, one bar per day")
    extra = [c for c in df.columns if c not in PRICE_COLUMNS]
    return df[PRICE_COLUMNS + extra].reset_index(drop=True)


class CsvMarketData(MarketDataSource):
    """
    Reads a single CSV file, or `<TICKER>.csv` from a directory.
    Bars before `start` are kept so strategies have warm-up history.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _file_for(self, ticker: str) -> Path:
        if self.path.is_dir():
            return self.path / f"{ticker.upper()}.csv"
        return self.path

    def get_price_history(self, ticker: str, start: Any = None, end: Any = None) -> pd.DataFrame:
        path = self._file_for(ticker)
        if not path.exists():
            raise ConfigurationError(f"No price file for {ticker} at {path}")
        df = pd.read_csv(path)
        df.columns = [str(c).strip().lower() for c in df.columns]
        df = prepare_price_frame(df)
        if end is not None:
            df = slice_dates(df, None, to_date(end))
        return df.reset_index(drop=True)


def slice_dates(df: pd.DataFrame, start: Optional[date], end: Optional[date]) -> pd.DataFrame:
    mask = pd.Series(True, index=df.index)
    if start is not None:
        mask &= df["date"] >= pd.Timestamp(start)
    if end is not None:
        mask &= df["date"] <= pd.Timestamp(end)
    return df[mask]
