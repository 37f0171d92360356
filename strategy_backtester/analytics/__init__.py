"""Analytics: performance metrics (returns, drawdown, Sharpe, win rate, profit factor)."""

from strategy_backtester.analytics.metrics import (
    PROFIT_FACTOR_SENTINEL,
    PerformanceMetrics,
    annualized_return,
    compute_metrics,
    daily_returns,
    sharpe_ratio,
    sortino_ratio,
    max_drawdown,
    total_return,
    volatility,
    win_rate,
    profit_factor,
    expectancy,
    realized_pnls,
)

__all__ = [
    "PROFIT_FACTOR_SENTINEL",
    "PerformanceMetrics",
    "annualized_return",
    "compute_metrics",
    "daily_returns",
    "sharpe_ratio",
    "sortino_ratio",
    "max_drawdown",
    "total_return",
    "volatility",
    "win_rate",
    "profit_factor",
    "expectancy",
    "realized_pnls",
]
