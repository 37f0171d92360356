"""Portfolio: ledger and sizing policy."""

from strategy_backtester.portfolio.ledger import OrderResult, PortfolioLedger
from strategy_backtester.portfolio.sizing import PositionSizer, SizingResult

__all__ = ["OrderResult", "PortfolioLedger", "PositionSizer", "SizingResult"]
