#!/usr/bin/env python3
"""
Strategy Backtester CLI: backtest | compare
Usage:
  python main.py backtest [--config config.yaml] [--strategy trend] [--csv prices.csv]
  python main.py compare [--config config.yaml] [--strategies value growth trend]
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from datetime import timedelta
from typing import Any, Dict

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from strategy_backtester.analytics.metrics import PerformanceMetrics
from strategy_backtester.backtesting.comparison import ComparisonHarness, ComparisonRequest, NamedStrategy
from strategy_backtester.backtesting.engine import BacktestEngine
from strategy_backtester.core.config import Config, load_config
from strategy_backtester.core.errors import BacktestError
from strategy_backtester.core.logger import setup_logging
from strategy_backtester.core.types import to_date
from strategy_backtester.data.base import CsvMarketData, MarketDataSource
from strategy_backtester.data.synthetic import SyntheticMarketData
from strategy_backtester.strategies.factory import StrategyKind, as_strategy

logger = logging.getLogger("strategy_backtester")

# Calendar days fetched before start_date so indicators are warm on day one.
HISTORY_DAYS = 120


def _apply_overrides(config: Config, args: argparse.Namespace) -> None:
    if args.ticker:
        config.ticker = args.ticker.upper()
    if args.start:
        config.start_date = args.start
    if args.end:
        config.end_date = args.end
    if args.capital is not None:
        config.initial_capital = args.capital
    if args.csv:
        config.data_csv = args.csv
    if getattr(args, "strategy", None):
        config.strategy = args.strategy
    if getattr(args, "strategies", None):
        config.compare_strategies = list(args.strategies)


def _data_source(config: Config) -> MarketDataSource:
    if config.data_csv:
        return CsvMarketData(config.data_csv)
    return SyntheticMarketData()


def _strategy_params(config: Config, source: MarketDataSource) -> Dict[str, Dict[str, Any]]:
    """Per-kind params from config; synthetic data also supplies value fundamentals."""
    params = {k: dict(v) for k, v in config.strategy_params.items()}
    if isinstance(source, SyntheticMarketData):
        value = params.setdefault(StrategyKind.VALUE.value, {})
        value.setdefault("fundamentals", source.fundamentals(config.ticker))
    if config.mixed_weights:
        params.setdefault(StrategyKind.MIXED.value, {})["weights"] = dict(config.mixed_weights)
    return params


def _load_prices(source: MarketDataSource, config: Config):
    start = to_date(config.start_date)
    return source.get_price_history(config.ticker, start - timedelta(days=HISTORY_DAYS), config.end_date)


def _print_metrics(title: str, final_value: float, m: PerformanceMetrics) -> None:
    print(f"\n--- {title} ---")
    print(f"Final value: {final_value:,.2f}")
    print(f"Total trades: {m.total_trades} (closed: {m.sell_trades}, wins: {m.winning_trades}, losses: {m.losing_trades})")
    print(f"Total return: {m.total_return * 100:.2f}%")
    print(f"Annualized return: {m.annualized_return * 100:.2f}%")
    print(f"Sharpe ratio: {m.sharpe_ratio:.2f}")
    print(f"Sortino ratio: {m.sortino_ratio:.2f}")
    print(f"Max drawdown: {m.max_drawdown * 100:.2f}%")
    print(f"Win rate: {m.win_rate * 100:.1f}%")
    print(f"Profit factor: {m.profit_factor:.2f}")
    print(f"Expectancy: {m.expectancy:.2f} per closed trade")


def run_backtest(config: Config, output: Path | None) -> int:
    """Single strategy over the configured ticker and date range."""
    source = _data_source(config)
    params = _strategy_params(config, source)
    strategy = as_strategy(config.strategy, all_params=params)
    prices = _load_prices(source, config)
    engine = BacktestEngine(strategy, **config.engine_kwargs())
    result = engine.run(prices, config.ticker, config.start_date, config.end_date)
    _print_metrics(f"Backtest {result.strategy_name} on {result.ticker}", result.final_value, result.metrics)
    if result.diagnostics.strategy_failures:
        print(f"Strategy failures (held): {result.diagnostics.strategy_failures}")
    if output:
        output.write_text(result.to_json(indent=2), encoding="utf-8")
        logger.info("Result written to %s", output)
    return 0


def run_compare(config: Config, output: Path | None) -> int:
    """Every configured strategy side by side."""
    source = _data_source(config)
    kwargs = config.engine_kwargs()
    kwargs.pop("initial_capital")
    harness = ComparisonHarness(
        max_workers=config.max_workers,
        strategy_params=_strategy_params(config, source),
        **kwargs,
    )
    request = ComparisonRequest(
        ticker=config.ticker,
        initial_capital=config.initial_capital,
        start_date=config.start_date,
        end_date=config.end_date,
        strategies=[NamedStrategy(name=k, strategy=k) for k in config.compare_strategies],
    )
    prices = _load_prices(source, config)
    result = harness.run(request, prices)
    for row in result.summary_table():
        print(
            f"{row.name:<12} final={row.final_value:>12,.2f} trades={row.trade_count:>4} "
            f"return={row.total_return * 100:>7.2f}% sharpe={row.sharpe_ratio:>6.2f} "
            f"mdd={row.max_drawdown * 100:>6.2f}% win={row.win_rate * 100:>5.1f}%"
        )
    for name, err in result.errors.items():
        print(f"{name:<12} ERROR: {err}")
    if output:
        output.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        logger.info("Comparison written to %s", output)
    return 0 if result.results else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Strategy Backtester CLI")
    parser.add_argument("mode", choices=["backtest", "compare"], help="Run one strategy or compare several")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--ticker", default=None, help="Instrument ticker")
    parser.add_argument("--start", default=None, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", default=None, help="End date (YYYY-MM-DD)")
    parser.add_argument("--capital", type=float, default=None, help="Initial capital")
    parser.add_argument("--csv", default=None, help="CSV file or directory of <TICKER>.csv (default: synthetic data)")
    parser.add_argument("--strategy", default=None, help="Strategy kind for backtest mode")
    parser.add_argument("--strategies", nargs="+", default=None, help="Strategy kinds for compare mode")
    parser.add_argument("--output", type=Path, default=None, help="Write the JSON result here")
    args = parser.parse_args()

    config = load_config(args.config, ROOT)
    _apply_overrides(config, args)
    setup_logging(config.log_level, config.log_dir, config.log_file, json_logs=config.json_logs)
    try:
        if args.mode == "backtest":
            return run_backtest(config, args.output)
        return run_compare(config, args.output)
    except (ValueError, BacktestError) as e:
        # ConfigurationError is a ValueError too
        logger.error("Backtest aborted: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
