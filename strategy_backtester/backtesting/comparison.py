"""
Comparison harness: one independent engine run per strategy over the same
price frame, then a date-aligned view of the equity curves.
"""

from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from strategy_backtester.backtesting.engine import BacktestEngine, BacktestResult
from strategy_backtester.core.errors import BacktestError, StrategyResolutionError
from strategy_backtester.data.base import prepare_price_frame
from strategy_backtester.strategies.base import BaseStrategy
from strategy_backtester.strategies.factory import as_strategy

logger = logging.getLogger("strategy_backtester.comparison")


@dataclass
class NamedStrategy:
    """Display name plus any handle accepted by as_strategy (instance, kind or callable)."""
    name: str
    strategy: Any


@dataclass
class ComparisonRequest:
    ticker: str
    initial_capital: float
    start_date: Any
    end_date: Any
    strategies: List[NamedStrategy] = field(default_factory=list)


@dataclass(frozen=True)
class StrategySummary:
    """One row of the side-by-side table."""
    name: str
    final_value: float
    trade_count: int
    total_return: float
    annualized_return: float
    max_drawdown: float
    sharpe_ratio: float
    win_rate: float
    profit_factor: float


def align_equity_curves(results: Mapping[str, BacktestResult]) -> List[Dict[str, Any]]:
    """
    Union of all equity dates, ascending. Each row holds `date` plus the value of
    every strategy that has a point on that date; missing dates stay absent.
    """
    by_name = {name: {p.date: p.value for p in r.equity_curve} for name, r in results.items()}
    all_dates = sorted({d for curve in by_name.values() for d in curve})
    rows = []
    for d in all_dates:
        row: Dict[str, Any] = {"date": d}
        for name, curve in by_name.items():
            if d in curve:
                row[name] = curve[d]
        rows.append(row)
    return rows


@dataclass(frozen=True)
class ComparisonResult:
    results: Dict[str, BacktestResult]
    errors: Dict[str, str]
    aligned_equity_curve: List[Dict[str, Any]]

    def summary_table(self) -> List[StrategySummary]:
        rows = []
        for name, r in self.results.items():
            m = r.metrics
            rows.append(StrategySummary(
                name=name,
                final_value=r.final_value,
                trade_count=len(r.trades),
                total_return=m.total_return,
                annualized_return=m.annualized_return,
                max_drawdown=m.max_drawdown,
                sharpe_ratio=m.sharpe_ratio,
                win_rate=m.win_rate,
                profit_factor=m.profit_factor,
            ))
        return rows

    def summary_frame(self) -> pd.DataFrame:
        rows = [vars(s) for s in self.summary_table()]
        return pd.DataFrame(rows).set_index("name") if rows else pd.DataFrame()

    def aligned_frame(self) -> pd.DataFrame:
        """Aligned curve as a date-indexed frame; absent points are NaN."""
        if not self.aligned_equity_curve:
            return pd.DataFrame()
        df = pd.DataFrame(self.aligned_equity_curve, columns=["date", *self.results.keys()])
        df["date"] = pd.to_datetime(df["date"])
        return df.set_index("date")

    def to_dict(self) -> dict:
        return {
            "perStrategy": {
                name: {
                    "equityCurve": [p.to_dict() for p in r.equity_curve],
                    "trades": [t.to_dict() for t in r.trades],
                    "finalValue": float(r.final_value),
                    "metrics": r.metrics.to_dict(),
                }
                for name, r in self.results.items()
            },
            "alignedEquityCurve": [
                {k: (v.isoformat() if isinstance(v, date) else float(v)) for k, v in row.items()}
                for row in self.aligned_equity_curve
            ],
            "errors": dict(self.errors),
        }


class ComparisonHarness:
    """
    Runs every requested strategy on a thread pool. Each slot builds its own engine
    and ledger; the prepared price frame is shared read-only. A failing slot is
    reported under `errors` and does not affect the others.
    """

    def __init__(
        self,
        max_workers: int = 4,
        strategy_params: Optional[Mapping[str, Mapping[str, Any]]] = None,
        **engine_kwargs: Any,
    ):
        self.max_workers = max(1, int(max_workers))
        self.strategy_params = dict(strategy_params or {})
        self.engine_kwargs = engine_kwargs

    def _resolve(self, slot: NamedStrategy) -> BaseStrategy:
        return as_strategy(slot.strategy, name=slot.name, all_params=self.strategy_params)

    def _run_one(self, slot: NamedStrategy, request: ComparisonRequest, prices: pd.DataFrame) -> BacktestResult:
        strategy = self._resolve(slot)
        kwargs = dict(self.engine_kwargs)
        kwargs["initial_capital"] = request.initial_capital
        engine = BacktestEngine(strategy, **kwargs)
        return engine.run(prices, request.ticker, request.start_date, request.end_date)

    def run(self, request: ComparisonRequest, prices: Any) -> ComparisonResult:
        """Raises ConfigurationError only for a price series no slot could use."""
        frame = prepare_price_frame(prices)
        errors: Dict[str, str] = {}
        slots: List[NamedStrategy] = []
        seen = set()
        for slot in request.strategies:
            if slot.name in seen:
                errors[slot.name] = f"duplicate strategy name {slot.name!r}"
                logger.warning("Skipping duplicate strategy name %s", slot.name)
                continue
            seen.add(slot.name)
            slots.append(slot)

        logger.info(
            "Comparing %d strategies on %s %s..%s (workers=%d)",
            len(slots), request.ticker, request.start_date, request.end_date, self.max_workers,
        )
        done: Dict[str, BacktestResult] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="compare") as executor:
            future_map = {executor.submit(self._run_one, slot, request, frame): slot for slot in slots}
            for future in as_completed(future_map):
                slot = future_map[future]
                try:
                    done[slot.name] = future.result()
                except (BacktestError, StrategyResolutionError) as e:
                    errors[slot.name] = str(e)
                    logger.warning("Strategy %s failed: %s", slot.name, e)
                except Exception as e:
                    errors[slot.name] = f"{type(e).__name__}: {e}"
                    logger.exception("Strategy %s failed unexpectedly: %s", slot.name, e)

        results = {s.name: done[s.name] for s in slots if s.name in done}
        ordered_errors = {s.name: errors[s.name] for s in request.strategies if s.name in errors}
        return ComparisonResult(
            results=results,
            errors=ordered_errors,
            aligned_equity_curve=align_equity_curves(results),
        )


def compare_strategies(
    prices: Any,
    ticker: str,
    start_date: Any,
    end_date: Any,
    strategies: Sequence[Any],
    initial_capital: float = 10000.0,
    **harness_kwargs: Any,
) -> ComparisonResult:
    """Shorthand: strategies may be kind names, BaseStrategy instances or NamedStrategy entries."""
    slots = []
    for s in strategies:
        if isinstance(s, NamedStrategy):
            slots.append(s)
        elif isinstance(s, BaseStrategy):
            slots.append(NamedStrategy(name=s.name, strategy=s))
        else:
            slots.append(NamedStrategy(name=str(getattr(s, "value", s)), strategy=s))
    request = ComparisonRequest(ticker, initial_capital, start_date, end_date, slots)
    return ComparisonHarness(**harness_kwargs).run(request, prices)
