"""End-to-end tests for the main.py CLI on synthetic data."""

import json
import logging
import sys

import pytest

import main
from strategy_backtester.strategies.rules import TrendStrategy


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("TICKER", "START_DATE", "END_DATE", "STRATEGY", "DATA_CSV", "LOG_LEVEL", "LOG_JSON"):
        monkeypatch.delenv(key, raising=False)
    yield
    pkg_logger = logging.getLogger("strategy_backtester")
    for handler in list(pkg_logger.handlers):
        handler.close()
        pkg_logger.removeHandler(handler)


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    return main.main()


def test_backtest_writes_result(tmp_path, monkeypatch):
    out = tmp_path / "result.json"
    code = _run(monkeypatch, "backtest", "--strategy", "trend", "--start", "2023-01-02",
                "--end", "2023-06-30", "--output", str(out))
    assert code == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["strategy"] == "trend"
    assert payload["equityCurve"][0]["date"] >= "2023-01-02"
    assert payload["finalValue"] == payload["equityCurve"][-1]["value"]


def test_compare_writes_aligned_curve(tmp_path, monkeypatch):
    out = tmp_path / "compare.json"
    code = _run(monkeypatch, "compare", "--strategies", "value", "trend", "mixed",
                "--start", "2023-01-02", "--end", "2023-03-31", "--output", str(out))
    assert code == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert set(payload["perStrategy"]) == {"value", "trend", "mixed"}
    assert all({"value", "trend", "mixed"} <= set(row) for row in payload["alignedEquityCurve"])


def test_configuration_error_exits_2(monkeypatch, capsys):
    code = _run(monkeypatch, "backtest", "--start", "2023-06-30", "--end", "2023-01-02")
    assert code == 2
    assert "error" in capsys.readouterr().err


def test_indicator_failure_exits_2(monkeypatch, capsys):
    def boom(self, df):
        raise KeyError("close")

    monkeypatch.setattr(TrendStrategy, "compute_indicators", boom)
    code = _run(monkeypatch, "backtest", "--strategy", "trend", "--start", "2023-01-02", "--end", "2023-03-31")
    assert code == 2
    assert "indicator computation failed" in capsys.readouterr().err
