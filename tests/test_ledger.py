"""Unit tests for portfolio.ledger."""

from datetime import date

import pytest
from strategy_backtester.core.types import SignalAction, TradeType
from strategy_backtester.portfolio.ledger import PortfolioLedger

D = date(2024, 1, 2)


def test_buy_updates_cash_and_position():
    ledger = PortfolioLedger(10000.0)
    r = ledger.apply_order("AAPL", SignalAction.BUY, 50, 100.0, D)
    assert r.accepted is True
    assert r.trade.type == TradeType.BUY
    assert r.trade.realized_profit is None
    assert ledger.cash == pytest.approx(5000.0)
    assert ledger.holding("AAPL") == 50
    assert ledger.position("AAPL").avg_cost == pytest.approx(100.0)


def test_buy_exceeding_cash_is_rejected_without_state_change():
    ledger = PortfolioLedger(1000.0)
    ledger.apply_order("AAPL", SignalAction.BUY, 5, 100.0, D)
    cash_before, positions_before = ledger.cash, ledger.positions
    r = ledger.apply_order("AAPL", SignalAction.BUY, 6, 100.0, D)
    assert r.accepted is False
    assert "insufficient cash" in r.reason
    assert ledger.cash == cash_before
    assert ledger.positions == positions_before


def test_weighted_average_cost():
    ledger = PortfolioLedger(10000.0)
    ledger.apply_order("AAPL", SignalAction.BUY, 10, 100.0, D)
    ledger.apply_order("AAPL", SignalAction.BUY, 30, 120.0, D)
    # (10*100 + 30*120) / 40 = 115
    assert ledger.position("AAPL").avg_cost == pytest.approx(115.0)
    assert ledger.holding("AAPL") == 40


def test_sell_realizes_profit_and_removes_closed_position():
    ledger = PortfolioLedger(10000.0)
    ledger.apply_order("AAPL", SignalAction.BUY, 10, 100.0, D)
    r = ledger.apply_order("AAPL", SignalAction.SELL, 4, 110.0, D)
    assert r.accepted is True
    assert r.trade.realized_profit == pytest.approx(40.0)
    assert ledger.holding("AAPL") == 6
    r = ledger.apply_order("AAPL", SignalAction.SELL, 6, 90.0, D)
    assert r.trade.realized_profit == pytest.approx(-60.0)
    assert ledger.position("AAPL") is None
    assert "AAPL" not in ledger.positions
    assert ledger.cash == pytest.approx(10000.0 - 1000.0 + 440.0 + 540.0)


def test_sell_more_than_held_is_rejected():
    ledger = PortfolioLedger(10000.0)
    ledger.apply_order("AAPL", SignalAction.BUY, 3, 100.0, D)
    r = ledger.apply_order("AAPL", SignalAction.SELL, 4, 100.0, D)
    assert r.accepted is False
    assert ledger.holding("AAPL") == 3


def test_invalid_orders_are_rejected():
    ledger = PortfolioLedger(10000.0)
    assert ledger.apply_order("AAPL", SignalAction.HOLD, 1, 100.0, D).accepted is False
    assert ledger.apply_order("AAPL", SignalAction.BUY, 0, 100.0, D).accepted is False
    assert ledger.apply_order("AAPL", SignalAction.BUY, 1, 0.0, D).accepted is False
    assert ledger.cash == 10000.0


def test_mark_to_market_and_snapshot():
    ledger = PortfolioLedger(10000.0)
    ledger.apply_order("AAPL", SignalAction.BUY, 50, 100.0, D)
    assert ledger.mark_to_market({"AAPL": 105.0}) == pytest.approx(10250.0)
    # falls back to the last seen price
    assert ledger.mark_to_market({}) == pytest.approx(10250.0)
    snap = ledger.snapshot({"AAPL": 110.0})
    assert snap.equity == pytest.approx(10500.0)
    assert snap.shares("AAPL") == 50
    assert snap.shares("MSFT") == 0


def test_fees_are_debited_and_recorded():
    ledger = PortfolioLedger(10000.0, fee_bps=10.0)
    r = ledger.apply_order("AAPL", SignalAction.BUY, 10, 100.0, D)
    assert r.trade.fees == pytest.approx(1.0)
    assert ledger.cash == pytest.approx(10000.0 - 1000.0 - 1.0)
