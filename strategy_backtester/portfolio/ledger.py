"""
Portfolio ledger: cash and positions, order application, mark-to-market.
Rejections are normal outcomes and never raise.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Mapping, Optional

from strategy_backtester.core.types import PortfolioSnapshot, Position, SignalAction, Trade, TradeType

logger = logging.getLogger("strategy_backtester.portfolio")


@dataclass
class OrderResult:
    """Outcome of apply_order: accepted with a trade, or rejected with a reason."""
    accepted: bool
    trade: Optional[Trade] = None
    reason: str = ""


class PortfolioLedger:
    """
    Single-currency cash + long positions. Invariants:
    cash >= 0, every held position has shares > 0, equity = cash + sum(shares * price).
    """

    def __init__(self, initial_cash: float, fee_bps: float = 0.0):
        if initial_cash < 0:
            raise ValueError("initial_cash must be >= 0")
        self._cash = float(initial_cash)
        self.fee_bps = fee_bps
        self._positions: Dict[str, Position] = {}
        self._last_prices: Dict[str, float] = {}

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def positions(self) -> Dict[str, Position]:
        return dict(self._positions)

    @property
    def last_prices(self) -> Dict[str, float]:
        return dict(self._last_prices)

    def position(self, ticker: str) -> Optional[Position]:
        return self._positions.get(ticker)

    def holding(self, ticker: str) -> int:
        pos = self._positions.get(ticker)
        return pos.shares if pos else 0

    def exposure(self, ticker: str, price: float) -> float:
        return self.holding(ticker) * price

    def _fee(self, notional: float) -> float:
        return notional * (self.fee_bps / 10000.0)

    def apply_order(
        self,
        ticker: str,
        action: SignalAction,
        shares: int,
        price: float,
        on_date: date,
    ) -> OrderResult:
        """Buy or sell whole shares at `price`. Rejected orders leave state untouched."""
        action = SignalAction(action)
        if action == SignalAction.HOLD:
            return OrderResult(accepted=False, reason="hold is not an order")
        if shares <= 0:
            return OrderResult(accepted=False, reason="shares must be positive")
        if price <= 0:
            return OrderResult(accepted=False, reason="price must be positive")
        shares = int(shares)
        notional = shares * price
        fee = self._fee(notional)

        if action == SignalAction.BUY:
            cost = notional + fee
            if cost > self._cash:
                return OrderResult(
                    accepted=False,
                    reason=f"insufficient cash: need {cost:.2f}, have {self._cash:.2f}",
                )
            pos = self._positions.get(ticker)
            if pos is None:
                self._positions[ticker] = Position(ticker=ticker, shares=shares, avg_cost=price)
            else:
                total = pos.shares + shares
                avg = (pos.shares * pos.avg_cost + shares * price) / total
                self._positions[ticker] = replace(pos, shares=total, avg_cost=avg)
            self._cash -= cost
            trade = Trade(date=on_date, ticker=ticker, type=TradeType.BUY, price=price, shares=shares, fees=fee)
        else:
            held = self.holding(ticker)
            if shares > held:
                return OrderResult(
                    accepted=False,
                    reason=f"insufficient shares: sell {shares}, hold {held}",
                )
            pos = self._positions[ticker]
            realized = (price - pos.avg_cost) * shares
            remaining = pos.shares - shares
            if remaining == 0:
                del self._positions[ticker]
            else:
                self._positions[ticker] = replace(pos, shares=remaining)
            self._cash += notional - fee
            trade = Trade(
                date=on_date,
                ticker=ticker,
                type=TradeType.SELL,
                price=price,
                shares=shares,
                realized_profit=realized,
                fees=fee,
            )
        logger.debug("%s: %s %s %d @ %.2f", on_date, trade.type.value, ticker, shares, price)
        return OrderResult(accepted=True, trade=trade)

    def mark_to_market(self, prices_by_ticker: Mapping[str, float]) -> float:
        """Equity at the given prices. Tickers without a price use the last seen price."""
        self._last_prices.update({t: float(p) for t, p in prices_by_ticker.items()})
        value = self._cash
        for ticker, pos in self._positions.items():
            price = self._last_prices.get(ticker, pos.avg_cost)
            value += pos.shares * price
        return value

    def snapshot(self, prices_by_ticker: Mapping[str, float]) -> PortfolioSnapshot:
        equity = self.mark_to_market(prices_by_ticker)
        return PortfolioSnapshot(cash=self._cash, positions=self.positions, equity=equity)
