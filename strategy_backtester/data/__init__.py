"""Market data: source contract, CSV and synthetic sources, indicators."""

from strategy_backtester.data.base import (
    CsvMarketData,
    MarketDataSource,
    bars_to_frame,
    frame_to_bars,
    prepare_price_frame,
)
from strategy_backtester.data.synthetic import SyntheticMarketData

__all__ = [
    "CsvMarketData",
    "MarketDataSource",
    "SyntheticMarketData",
    "bars_to_frame",
    "frame_to_bars",
    "prepare_price_frame",
]
