"""
Core data types for bars, signals, positions, trades and equity points.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import pandas as pd


class SignalAction(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class TradeType(str, Enum):
    BUY = "buy"
    SELL = "sell"


def to_date(value: Any) -> date:
    """Parse an ISO string, datetime or Timestamp into a calendar date."""
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return pd.Timestamp(value.strip()).date()
    raise TypeError(f"Cannot interpret {value!r} as a date")


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _fraction(value: Any) -> float:
    """0..1 fraction; values above 1 are read as percentages."""
    f = float(value)
    if f > 1.0:
        f = f / 100.0
    return _clamp(f)


@dataclass
class PriceBar:
    """Daily OHLCV bar."""
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass
class Signal:
    """Strategy recommendation for one day."""
    action: SignalAction
    confidence: float = 0.0
    target_position: Optional[float] = None
    reasoning: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.action = SignalAction(str(getattr(self.action, "value", self.action)).strip().lower())
        self.confidence = _fraction(self.confidence)
        if self.target_position is not None:
            self.target_position = _fraction(self.target_position)

    @classmethod
    def neutral(cls, reason: str = "") -> "Signal":
        """Hold with zero confidence; used whenever a strategy cannot answer."""
        return cls(action=SignalAction.HOLD, confidence=0.0, reasoning=reason or None)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Signal":
        target = data.get("targetPosition", data.get("target_position", data.get("position")))
        return cls(
            action=data.get("action", SignalAction.HOLD),
            confidence=data.get("confidence", 0.0) or 0.0,
            target_position=target,
            reasoning=data.get("reasoning"),
            metadata=dict(data.get("metadata") or {}),
        )


def coerce_signal(raw: Any) -> Signal:
    """Accept a Signal, a mapping or None from a strategy handle."""
    if raw is None:
        return Signal.neutral("strategy returned no signal")
    if isinstance(raw, Signal):
        return raw
    if isinstance(raw, Mapping):
        return Signal.from_mapping(raw)
    raise TypeError(f"Strategy returned unsupported signal type {type(raw).__name__}")


@dataclass(frozen=True)
class Position:
    """Open position. Closed positions are removed, never kept at zero shares."""
    ticker: str
    shares: int
    avg_cost: float


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Read-only portfolio view handed to strategies."""
    cash: float
    positions: Dict[str, Position]
    equity: float

    def shares(self, ticker: str) -> int:
        pos = self.positions.get(ticker)
        return pos.shares if pos else 0


@dataclass(frozen=True)
class Trade:
    """Executed order. realized_profit is set on sells only."""
    date: date
    ticker: str
    type: TradeType
    price: float
    shares: int
    realized_profit: Optional[float] = None
    fees: float = 0.0

    @property
    def value(self) -> float:
        return self.price * self.shares

    def to_dict(self) -> dict:
        out = {
            "date": self.date.isoformat(),
            "ticker": self.ticker,
            "type": self.type.value,
            "price": float(self.price),
            "shares": int(self.shares),
            "fees": float(self.fees),
        }
        if self.realized_profit is not None:
            out["realizedProfit"] = float(self.realized_profit)
        return out


@dataclass(frozen=True)
class EquityPoint:
    date: date
    value: float

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "value": float(self.value)}
