"""
Load configuration from config.yaml and .env. Environment variables win.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    def env(key: str, default: Any = "") -> str:
        value = os.getenv(key)
        if value is None:
            return "" if default is None else str(default)
        return value.strip()

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    backtest = data.get("backtest", {}) or {}
    compare = data.get("compare", {}) or {}
    sizing = data.get("sizing", {}) or {}
    execution = data.get("execution", {}) or {}
    metrics = data.get("metrics", {}) or {}
    source = data.get("data", {}) or {}
    strategies = data.get("strategies", {}) or {}
    logging_cfg = data.get("logging", {}) or {}

    mixed = dict(strategies.get("mixed", {}) or {})
    mixed_weights = mixed.pop("weights", None)
    strategy_params = {str(k): dict(v or {}) for k, v in strategies.items() if k != "mixed"}
    if mixed:
        strategy_params["mixed"] = mixed

    return Config(
        ticker=env("TICKER", backtest.get("ticker", "AAPL")).upper(),
        start_date=env("START_DATE", backtest.get("start_date", "2023-01-02")),
        end_date=env("END_DATE", backtest.get("end_date", "2023-12-29")),
        initial_capital=env_float("INITIAL_CAPITAL", float(backtest.get("initial_capital", 10000.0))),
        strategy=env("STRATEGY", backtest.get("strategy", "trend")),
        compare_strategies=list(compare.get("strategies", ["value", "growth", "trend", "quant"])),
        max_workers=env_int("MAX_WORKERS", int(compare.get("max_workers", 4))),
        min_confidence=env_float("MIN_CONFIDENCE", float(sizing.get("min_confidence", 0.1))),
        max_exposure=env_float("MAX_EXPOSURE", float(sizing.get("max_exposure", 1.0))),
        fee_bps=env_float("FEE_BPS", float(execution.get("fee_bps", 0.0))),
        signal_timeout_s=env_float("SIGNAL_TIMEOUT_S", float(execution.get("signal_timeout_s", 30.0))),
        risk_free_rate=env_float("RISK_FREE_RATE", float(metrics.get("risk_free_rate", 0.0))),
        periods_per_year=float(metrics.get("periods_per_year", 252.0)),
        data_csv=env("DATA_CSV", source.get("csv_path")) or None,
        strategy_params=strategy_params,
        mixed_weights=mixed_weights,
        log_level=env("LOG_LEVEL", logging_cfg.get("level", "INFO")),
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file", "strategy_backtester.log"),
        json_logs=env("LOG_JSON", logging_cfg.get("json", False)).lower() in ("1", "true", "yes"),
    )


class Config:
    """Unified configuration. Treat as read-only after load."""

    __slots__ = (
        "ticker", "start_date", "end_date", "initial_capital", "strategy",
        "compare_strategies", "max_workers",
        "min_confidence", "max_exposure", "fee_bps", "signal_timeout_s",
        "risk_free_rate", "periods_per_year",
        "data_csv", "strategy_params", "mixed_weights",
        "log_level", "log_dir", "log_file", "json_logs",
    )

    def __init__(
        self,
        ticker: str = "AAPL",
        start_date: str = "2023-01-02",
        end_date: str = "2023-12-29",
        initial_capital: float = 10000.0,
        strategy: str = "trend",
        compare_strategies: Optional[List[str]] = None,
        max_workers: int = 4,
        min_confidence: float = 0.1,
        max_exposure: float = 1.0,
        fee_bps: float = 0.0,
        signal_timeout_s: float = 30.0,
        risk_free_rate: float = 0.0,
        periods_per_year: float = 252.0,
        data_csv: Optional[str] = None,
        strategy_params: Optional[Dict[str, Dict[str, Any]]] = None,
        mixed_weights: Optional[Dict[str, float]] = None,
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "strategy_backtester.log",
        json_logs: bool = False,
    ):
        self.ticker = ticker
        self.start_date = start_date
        self.end_date = end_date
        self.initial_capital = initial_capital
        self.strategy = strategy
        self.compare_strategies = compare_strategies or ["value", "growth", "trend", "quant"]
        self.max_workers = max_workers
        self.min_confidence = min_confidence
        self.max_exposure = max_exposure
        self.fee_bps = fee_bps
        self.signal_timeout_s = signal_timeout_s
        self.risk_free_rate = risk_free_rate
        self.periods_per_year = periods_per_year
        self.data_csv = data_csv
        self.strategy_params = strategy_params or {}
        self.mixed_weights = mixed_weights
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file
        self.json_logs = json_logs

    def engine_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments shared by every BacktestEngine built from this config."""
        from strategy_backtester.portfolio.sizing import PositionSizer

        return {
            "initial_capital": self.initial_capital,
            "sizer": PositionSizer(min_confidence=self.min_confidence, max_exposure=self.max_exposure),
            "fee_bps": self.fee_bps,
            "signal_timeout_s": self.signal_timeout_s if self.signal_timeout_s > 0 else None,
            "risk_free_rate": self.risk_free_rate,
            "periods_per_year": self.periods_per_year,
        }

    def params_for(self, kind: str) -> Dict[str, Any]:
        return dict(self.strategy_params.get(kind, {}))
