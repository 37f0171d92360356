"""
Logging for backtest runs. Console plus optional file, JSON lines optional.
Component loggers live under "strategy_backtester" (backtest, compare, sizing, ...).
"""

from __future__ import annotations
import json
import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "strategy_backtester"
CONSOLE_HANDLER = "strategy_backtester.console"
FILE_HANDLER = "strategy_backtester.file"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, so run logs can be grepped by component."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "component": record.name.rpartition(".")[2] if record.name != PACKAGE_LOGGER else "main",
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
    json_logs: bool = False,
) -> logging.Logger:
    """
    Configure the package logger: console and optional file.
    Calling it again replaces the handlers it installed earlier.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger(PACKAGE_LOGGER)
    root.setLevel(log_level)
    for handler in list(root.handlers):
        if handler.get_name() in (CONSOLE_HANDLER, FILE_HANDLER):
            root.removeHandler(handler)
            handler.close()

    if json_logs:
        formatter: logging.Formatter = JsonFormatter()
    else:
        # thread name shows which comparison slot or timed-out signal call logged
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console = logging.StreamHandler(sys.stdout)
    console.set_name(CONSOLE_HANDLER)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir and log_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / log_file, encoding="utf-8")
        fh.set_name(FILE_HANDLER)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    return root
