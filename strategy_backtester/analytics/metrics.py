"""
Performance metrics over an equity curve and trade log: returns, drawdown,
Sharpe/Sortino, win rate, profit factor, expectancy.
Returns are daily; annualisation uses periods_per_year (252).
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from datetime import date
from typing import Iterable, List, Sequence

import numpy as np

from strategy_backtester.core.types import Trade, TradeType

# Reported instead of infinity when there are wins but no losses.
PROFIT_FACTOR_SENTINEL = 999_999.0


@dataclass(frozen=True)
class PerformanceMetrics:
    """Aggregate performance metrics. Fractions, not percentages."""
    total_return: float
    annualized_return: float
    max_drawdown: float
    sharpe_ratio: float
    win_rate: float
    profit_factor: float
    sortino_ratio: float = 0.0
    volatility: float = 0.0
    expectancy: float = 0.0
    total_trades: int = 0
    sell_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    trading_days: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        return {_camel(k): (int(v) if isinstance(v, int) else float(v)) for k, v in d.items()}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)


def total_return(initial_capital: float, final_value: float) -> float:
    if initial_capital <= 0:
        return 0.0
    return (final_value - initial_capital) / initial_capital


def annualized_return(total: float, first_date: date, last_date: date) -> float:
    """Compound over elapsed calendar days; spans under one day return `total`."""
    span_days = (last_date - first_date).days
    if span_days < 1:
        return total
    growth = 1.0 + total
    if growth <= 0:
        return -1.0
    return float(growth ** (365.0 / span_days) - 1.0)


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a positive fraction (0.15 = 15%)."""
    if len(equity) == 0:
        return 0.0
    arr = np.asarray(equity, dtype=float)
    peak = np.maximum.accumulate(arr)
    dd = (peak - arr) / np.where(peak > 0, peak, 1.0)
    return float(np.max(dd))


def daily_returns(equity: Sequence[float]) -> List[float]:
    """equity[i] / equity[i-1] - 1; zero where the previous value is not positive."""
    arr = np.asarray(equity, dtype=float)
    if arr.size < 2:
        return []
    prev = arr[:-1]
    rets = np.where(prev > 0, arr[1:] / np.where(prev > 0, prev, 1.0) - 1.0, 0.0)
    return rets.tolist()


def sharpe_ratio(returns: List[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sharpe. risk_free_rate is annual; the daily rate is rate / periods."""
    if not returns:
        return 0.0
    arr = np.array(returns)
    excess = arr - risk_free_rate / periods_per_year
    if arr.std() <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * excess.mean() / arr.std())


def sortino_ratio(returns: List[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sortino (downside deviation)."""
    if not returns:
        return 0.0
    arr = np.array(returns)
    excess = arr - risk_free_rate / periods_per_year
    downside = arr[arr < 0]
    if len(downside) == 0 or downside.std() <= 1e-12:
        return sharpe_ratio(returns, risk_free_rate, periods_per_year)
    return float(np.sqrt(periods_per_year) * excess.mean() / downside.std())


def volatility(returns: List[float], periods_per_year: float = 252.0) -> float:
    """Annualized standard deviation of period returns."""
    if not returns:
        return 0.0
    return float(np.array(returns).std() * np.sqrt(periods_per_year))


def realized_pnls(trades: Iterable[Trade]) -> List[float]:
    """Realized profit of every sell trade, in order."""
    return [
        float(t.realized_profit or 0.0)
        for t in trades
        if t.type == TradeType.SELL
    ]


def win_rate(pnls: List[float]) -> float:
    """Fraction of closed trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: List[float]) -> float:
    """Gross profit / gross loss. 0 without wins, PROFIT_FACTOR_SENTINEL without losses."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if wins <= 0:
        return 0.0
    if losses <= 0:
        return PROFIT_FACTOR_SENTINEL
    return wins / losses


def expectancy(pnls: List[float]) -> float:
    """Average PnL per closed trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def compute_metrics(
    equity: Sequence[float],
    dates: Sequence[date],
    trades: Sequence[Trade],
    initial_capital: float,
    risk_free_rate: float = 0.0,
    periods_per_year: float = 252.0,
) -> PerformanceMetrics:
    """Full metric set from the ordered equity series, its dates and the trade log."""
    pnls = realized_pnls(trades)
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    if len(equity) == 0:
        return PerformanceMetrics(
            total_return=0.0, annualized_return=0.0, max_drawdown=0.0, sharpe_ratio=0.0,
            win_rate=win_rate(pnls), profit_factor=profit_factor(pnls),
            total_trades=len(trades), sell_trades=len(pnls),
        )
    final_value = float(equity[-1])
    total = total_return(initial_capital, final_value)
    rets = daily_returns(equity)
    return PerformanceMetrics(
        total_return=total,
        annualized_return=annualized_return(total, dates[0], dates[-1]),
        max_drawdown=max_drawdown(equity),
        sharpe_ratio=sharpe_ratio(rets, risk_free_rate, periods_per_year),
        win_rate=win_rate(pnls),
        profit_factor=profit_factor(pnls),
        sortino_ratio=sortino_ratio(rets, risk_free_rate, periods_per_year),
        volatility=volatility(rets, periods_per_year),
        expectancy=expectancy(pnls),
        total_trades=len(trades),
        sell_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
        trading_days=len(equity),
    )
