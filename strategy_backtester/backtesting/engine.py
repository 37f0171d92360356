"""
Backtest engine: daily replay with no lookahead.
Each day the strategy sees bars up to and including today, its signal is sized
into a whole-share order, the order fills at today's close, and equity is marked
to that close. Day i+1 never starts before day i's order is applied.
"""

from __future__ import annotations
import asyncio
import concurrent.futures
import inspect
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Optional, Sequence, Union

import pandas as pd

from strategy_backtester.analytics.metrics import PerformanceMetrics, compute_metrics
from strategy_backtester.core.errors import BacktestError, ConfigurationError
from strategy_backtester.core.types import (
    EquityPoint,
    PortfolioSnapshot,
    PriceBar,
    Signal,
    SignalAction,
    Trade,
    coerce_signal,
    to_date,
)
from strategy_backtester.data.base import prepare_price_frame, slice_dates
from strategy_backtester.portfolio.ledger import PortfolioLedger
from strategy_backtester.portfolio.sizing import PositionSizer
from strategy_backtester.strategies.base import BaseStrategy

logger = logging.getLogger("strategy_backtester.backtest")


@dataclass
class RunDiagnostics:
    """What went wrong (without failing) during one run."""
    warnings: List[str] = field(default_factory=list)
    strategy_failures: int = 0
    timeouts: int = 0
    rejected_orders: int = 0
    clamped_sells: int = 0

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def to_dict(self) -> dict:
        return {
            "warnings": list(self.warnings),
            "strategyFailures": self.strategy_failures,
            "timeouts": self.timeouts,
            "rejectedOrders": self.rejected_orders,
            "clampedSells": self.clamped_sells,
        }


@dataclass(frozen=True)
class BacktestResult:
    """Immutable output of one run."""
    ticker: str
    strategy_name: str
    start_date: date
    end_date: date
    initial_capital: float
    equity_curve: List[EquityPoint]
    trades: List[Trade]
    final_value: float
    metrics: PerformanceMetrics
    diagnostics: RunDiagnostics = field(default_factory=RunDiagnostics)

    @property
    def returns(self) -> float:
        return self.metrics.total_return

    @property
    def annualized_returns(self) -> float:
        return self.metrics.annualized_return

    @property
    def max_drawdown(self) -> float:
        return self.metrics.max_drawdown

    @property
    def sharpe_ratio(self) -> float:
        return self.metrics.sharpe_ratio

    def equity_series(self) -> pd.Series:
        """Equity values indexed by Timestamp."""
        return pd.Series(
            [p.value for p in self.equity_curve],
            index=pd.to_datetime([p.date for p in self.equity_curve]),
            name=self.strategy_name,
        )

    def to_dict(self) -> dict:
        return {
            "ticker": self.ticker,
            "strategy": self.strategy_name,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "initialCapital": float(self.initial_capital),
            "equityCurve": [p.to_dict() for p in self.equity_curve],
            "trades": [t.to_dict() for t in self.trades],
            "finalValue": float(self.final_value),
            "returns": float(self.returns),
            "annualizedReturns": float(self.annualized_returns),
            "maxDrawdown": float(self.max_drawdown),
            "sharpeRatio": float(self.sharpe_ratio),
            "metrics": self.metrics.to_dict(),
            "diagnostics": self.diagnostics.to_dict(),
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)


async def _await(awaitable: Any) -> Any:
    return await awaitable


def _in_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _call_in_daemon(fn: Callable[..., Any], args: tuple, timeout: Optional[float], name: str) -> Any:
    """
    Run fn on a daemon thread and wait up to timeout seconds for it.
    A call that times out keeps running in the background but never blocks
    interpreter exit.
    """
    future: concurrent.futures.Future = concurrent.futures.Future()

    def target() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args))
        except BaseException as e:
            future.set_exception(e)

    threading.Thread(target=target, name=name, daemon=True).start()
    return future.result(timeout=timeout)


def _call_strategy(strategy: BaseStrategy, window: pd.DataFrame, on_date: date, snapshot: PortfolioSnapshot) -> Signal:
    """Call generate_signal and settle an awaitable result on this thread."""
    result = strategy.generate_signal(window, on_date, snapshot)
    if inspect.isawaitable(result):
        result = asyncio.run(_await(result))
    return coerce_signal(result)


class BacktestEngine:
    """
    Runs one strategy over one ticker. An engine may be reused; every run gets a
    fresh ledger. signal_timeout_s bounds each strategy call (None or <= 0: unbounded).
    """

    def __init__(
        self,
        strategy: BaseStrategy,
        initial_capital: float = 10000.0,
        sizer: Optional[PositionSizer] = None,
        fee_bps: float = 0.0,
        signal_timeout_s: Optional[float] = 30.0,
        risk_free_rate: float = 0.0,
        periods_per_year: float = 252.0,
    ):
        self.strategy = strategy
        self.initial_capital = initial_capital
        self.sizer = sizer or PositionSizer()
        self.fee_bps = fee_bps
        self.signal_timeout_s = signal_timeout_s if signal_timeout_s and signal_timeout_s > 0 else None
        self.risk_free_rate = risk_free_rate
        self.periods_per_year = periods_per_year

    def _validate(self, prices: Any, start: date, end: date) -> pd.DataFrame:
        if not self.initial_capital or self.initial_capital <= 0:
            raise ConfigurationError(f"initial capital must be positive, got {self.initial_capital}")
        if start >= end:
            raise ConfigurationError(f"start date {start} must be before end date {end}")
        df = prepare_price_frame(prices)
        df = slice_dates(df, None, end).reset_index(drop=True)
        in_range = (df["date"] >= pd.Timestamp(start)).sum()
        if in_range == 0:
            raise ConfigurationError(f"no price bars between {start} and {end}")
        return df

    def _indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        try:
            out = self.strategy.compute_indicators(df.copy())
        except Exception as e:
            raise BacktestError(f"{self.strategy.name}: indicator computation failed: {e}") from e
        if len(out) != len(df):
            raise BacktestError(f"{self.strategy.name}: compute_indicators must not add or drop bars")
        return out.reset_index(drop=True)

    def _signal(
        self,
        window: pd.DataFrame,
        on_date: date,
        snapshot: PortfolioSnapshot,
        diagnostics: RunDiagnostics,
    ) -> Signal:
        """Strategy call with the hold fallback on exception, timeout or an unusable return."""
        args = (self.strategy, window, on_date, snapshot)
        try:
            # asyncio.run needs a thread without a running loop
            if self.signal_timeout_s is None and not _in_event_loop():
                return _call_strategy(*args)
            return _call_in_daemon(_call_strategy, args, self.signal_timeout_s, f"signal-{self.strategy.name}")
        except concurrent.futures.TimeoutError:
            diagnostics.timeouts += 1
            diagnostics.strategy_failures += 1
            diagnostics.warn(f"{on_date}: {self.strategy.name} timed out after {self.signal_timeout_s}s, holding")
        except Exception as e:
            diagnostics.strategy_failures += 1
            diagnostics.warn(f"{on_date}: {self.strategy.name} failed, holding: {type(e).__name__}: {e}")
        return Signal.neutral("strategy call failed")

    def run(
        self,
        prices: Union[pd.DataFrame, Sequence[PriceBar]],
        ticker: str,
        start_date: Any,
        end_date: Any,
    ) -> BacktestResult:
        """
        Replay [start_date, end_date]. Bars before start_date are visible to the
        strategy as history but are not traded.
        Raises ConfigurationError before any state is built when inputs are invalid.
        """
        start, end = to_date(start_date), to_date(end_date)
        df = self._validate(prices, start, end)
        df = self._indicators(df)
        first = int((df["date"] < pd.Timestamp(start)).sum())

        ledger = PortfolioLedger(self.initial_capital, fee_bps=self.fee_bps)
        diagnostics = RunDiagnostics()
        trades: List[Trade] = []
        equity_curve: List[EquityPoint] = []
        logger.info(
            "Backtest %s on %s: %s..%s, %d bars, capital %.2f",
            self.strategy.name, ticker, start, end, len(df) - first, self.initial_capital,
        )

        for i in range(first, len(df)):
            on_date = df["date"].iat[i].date()
            close = float(df["close"].iat[i])
            window = df.iloc[: i + 1].copy()
            snapshot = ledger.snapshot({ticker: close})

            signal = self._signal(window, on_date, snapshot, diagnostics)
            trade = self._execute(ledger, signal, ticker, close, on_date, snapshot.equity, diagnostics)
            if trade is not None:
                trades.append(trade)

            equity_curve.append(EquityPoint(date=on_date, value=ledger.mark_to_market({ticker: close})))

        values = [p.value for p in equity_curve]
        metrics = compute_metrics(
            values,
            [p.date for p in equity_curve],
            trades,
            self.initial_capital,
            risk_free_rate=self.risk_free_rate,
            periods_per_year=self.periods_per_year,
        )
        final_value = values[-1]
        logger.info(
            "Backtest %s done: final %.2f, return %.2f%%, %d trades, %d strategy failures",
            self.strategy.name, final_value, metrics.total_return * 100, len(trades), diagnostics.strategy_failures,
        )
        return BacktestResult(
            ticker=ticker,
            strategy_name=self.strategy.name,
            start_date=start,
            end_date=end,
            initial_capital=self.initial_capital,
            equity_curve=equity_curve,
            trades=trades,
            final_value=final_value,
            metrics=metrics,
            diagnostics=diagnostics,
        )

    def _execute(
        self,
        ledger: PortfolioLedger,
        signal: Signal,
        ticker: str,
        price: float,
        on_date: date,
        equity: float,
        diagnostics: RunDiagnostics,
    ) -> Optional[Trade]:
        held = ledger.holding(ticker)
        sized = self.sizer.size_order(signal, price, equity, held, fee_bps=self.fee_bps)
        if not sized.allowed:
            return None
        shares = sized.shares
        if sized.action == SignalAction.SELL and shares > held:
            # Oversized sells close the whole holding.
            diagnostics.clamped_sells += 1
            logger.debug("%s: sell of %d clamped to holding %d", on_date, shares, held)
            shares = held
            if shares == 0:
                return None
        result = ledger.apply_order(ticker, sized.action, shares, price, on_date)
        if not result.accepted:
            diagnostics.rejected_orders += 1
            logger.info("%s: %s %d %s rejected: %s", on_date, sized.action.value, shares, ticker, result.reason)
            return None
        return result.trade
