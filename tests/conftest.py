"""Shared fixtures: small deterministic price frames."""

from datetime import date, timedelta
from typing import Sequence

import pandas as pd
import pytest


def make_prices(closes: Sequence[float], start: date = date(2024, 1, 1)) -> pd.DataFrame:
    """One bar per calendar day starting at `start`; open/high/low equal close."""
    dates = [start + timedelta(days=i) for i in range(len(closes))]
    return pd.DataFrame({
        "date": pd.to_datetime(dates),
        "open": closes,
        "high": closes,
        "low": closes,
        "close": closes,
        "volume": [1000.0] * len(closes),
    })


@pytest.fixture
def five_bars() -> pd.DataFrame:
    return make_prices([100.0, 105.0, 110.0, 108.0, 115.0])


@pytest.fixture
def ten_bars() -> pd.DataFrame:
    return make_prices([100.0, 102.0, 101.0, 104.0, 107.0, 103.0, 99.0, 101.0, 106.0, 110.0])
