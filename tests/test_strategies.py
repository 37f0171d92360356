"""Tests for strategy variants, the mixed combinator, reasoning parsing and the factory."""

import asyncio
from datetime import date

import pytest
from conftest import make_prices
from strategy_backtester.core.errors import StrategyResolutionError
from strategy_backtester.core.types import PortfolioSnapshot, Signal, SignalAction, coerce_signal
from strategy_backtester.strategies.advisor import AdvisorStrategy
from strategy_backtester.strategies.base import BaseStrategy, CallableStrategy
from strategy_backtester.strategies.decorators import ReasoningParserStrategy
from strategy_backtester.strategies.factory import StrategyKind, as_strategy, create_strategy
from strategy_backtester.strategies.mixed import MixedStrategy
from strategy_backtester.strategies.parsing import keyword_signal, parse_reasoning
from strategy_backtester.strategies.rules import (
    QuantStrategy,
    RiskManagedStrategy,
    SentimentStrategy,
    TrendStrategy,
    ValueStrategy,
)

D = date(2024, 1, 10)
EMPTY = PortfolioSnapshot(cash=10000.0, positions={}, equity=10000.0)


class Fixed(BaseStrategy):
    def __init__(self, name, signal):
        self.name = name
        self.signal = signal

    def generate_signal(self, window, on_date, portfolio):
        return self.signal


# --- signal coercion ---

def test_signal_clamps_and_reads_percentages():
    s = Signal("BUY", 72, target_position=1.5)
    assert s.action == SignalAction.BUY
    assert s.confidence == pytest.approx(0.72)
    assert s.target_position == pytest.approx(0.015)
    assert Signal(SignalAction.SELL, -0.5).confidence == 0.0


def test_coerce_signal_from_mapping_and_none():
    s = coerce_signal({"action": "sell", "confidence": 0.4, "targetPosition": 0.1})
    assert (s.action, s.confidence, s.target_position) == (SignalAction.SELL, 0.4, 0.1)
    assert coerce_signal(None).action == SignalAction.HOLD
    with pytest.raises(TypeError):
        coerce_signal("buy")


# --- mixed ---

def test_mixed_weighted_average_and_majority():
    mixed = MixedStrategy(
        [
            Fixed("a", Signal(SignalAction.BUY, 0.9, target_position=0.8)),
            Fixed("b", Signal(SignalAction.BUY, 0.6, target_position=0.4)),
            Fixed("c", Signal(SignalAction.SELL, 0.3)),
        ],
        weights={"a": 2, "b": 1, "c": 1},
    )
    s = mixed.generate_signal(None, D, EMPTY)
    assert s.action == SignalAction.BUY
    assert s.confidence == pytest.approx(0.5 * 0.9 + 0.25 * 0.6 + 0.25 * 0.3)
    # target averaged over a and b only, weights renormalised
    assert s.target_position == pytest.approx((0.5 * 0.8 + 0.25 * 0.4) / 0.75)


def test_mixed_tie_resolves_to_hold():
    mixed = MixedStrategy([
        Fixed("a", Signal(SignalAction.BUY, 0.9)),
        Fixed("b", Signal(SignalAction.SELL, 0.9)),
    ])
    s = mixed.generate_signal(None, D, EMPTY)
    assert s.action == SignalAction.HOLD
    assert s.confidence == pytest.approx(0.9)


def test_mixed_child_failure_counts_as_hold():
    class Broken(BaseStrategy):
        name = "broken"

        def generate_signal(self, window, on_date, portfolio):
            raise RuntimeError("boom")

    mixed = MixedStrategy([Fixed("a", Signal(SignalAction.BUY, 1.0)), Broken()], weights={"a": 3, "broken": 1})
    s = mixed.generate_signal(None, D, EMPTY)
    assert s.action == SignalAction.BUY
    assert s.confidence == pytest.approx(0.75)


def test_mixed_resolves_async_children():
    async def later(window, on_date, portfolio):
        return Signal(SignalAction.SELL, 0.8)

    mixed = MixedStrategy([CallableStrategy(later, name="later"), Fixed("a", Signal(SignalAction.SELL, 0.4))])
    result = mixed.generate_signal(None, D, EMPTY)
    s = asyncio.run(result)
    assert s.action == SignalAction.SELL
    assert s.confidence == pytest.approx(0.6)


def test_mixed_invalid_weights():
    children = [Fixed("a", Signal(SignalAction.HOLD)), Fixed("b", Signal(SignalAction.HOLD))]
    with pytest.raises(StrategyResolutionError):
        MixedStrategy(children, weights={"zzz": 1.0})
    with pytest.raises(StrategyResolutionError):
        MixedStrategy(children, weights={"a": -1.0, "b": 2.0})
    with pytest.raises(StrategyResolutionError):
        MixedStrategy(children, weights={"a": 0.0, "b": 0.0})
    with pytest.raises(StrategyResolutionError):
        MixedStrategy([Fixed("a", None), Fixed("a", None)])


# --- reasoning parsing ---

def test_parse_reasoning_key_value_lines():
    p = parse_reasoning("Market looks strong.\nAction: BUY\nConfidence: 72%\nPosition: 40%")
    assert p.action == SignalAction.BUY
    assert p.confidence == pytest.approx(0.72)
    assert p.position == pytest.approx(0.40)


def test_parse_reasoning_json():
    p = parse_reasoning('Answer: {"action": "sell", "confidence": 0.65, "targetPosition": 0.1}')
    assert (p.action, p.confidence, p.position) == (SignalAction.SELL, 0.65, 0.1)


def test_parse_reasoning_without_action_raises():
    with pytest.raises(ValueError):
        parse_reasoning("prices went up today")
    with pytest.raises(ValueError):
        parse_reasoning("")


def test_keyword_signal():
    assert keyword_signal("Strongly bullish, I would buy here").action == SignalAction.BUY
    assert keyword_signal("Bearish outlook: reduce exposure").action == SignalAction.SELL
    hold = keyword_signal("nothing to see")
    assert hold.action == SignalAction.HOLD
    assert hold.confidence == 0.0


def test_reasoning_parser_decorator_overrides_fields():
    inner = Fixed("trend", Signal(SignalAction.HOLD, 0.2, reasoning="Signal: buy\nConfidence: 0.9\nTarget position: 0.6"))
    s = ReasoningParserStrategy(inner).generate_signal(None, D, EMPTY)
    assert s.action == SignalAction.BUY
    assert s.confidence == pytest.approx(0.9)
    assert s.target_position == pytest.approx(0.6)
    # the inner strategy's signal is untouched
    assert inner.signal.action == SignalAction.HOLD


def test_reasoning_parser_decorator_keeps_raw_signal_on_failure():
    raw = Signal(SignalAction.SELL, 0.7, reasoning="no structure here")
    s = ReasoningParserStrategy(Fixed("x", raw)).generate_signal(None, D, EMPTY)
    assert s is raw


def test_reasoning_parser_decorator_is_transparent():
    inner = TrendStrategy()
    wrapped = ReasoningParserStrategy(inner)
    assert wrapped.name == inner.name
    df = make_prices([float(i) for i in range(1, 80)])
    assert list(wrapped.compute_indicators(df).columns) == list(inner.compute_indicators(df).columns)


def test_advisor_strategy_sync_and_async():
    sync = AdvisorStrategy(lambda w, d, p: "I am bullish; buy with confidence: 80%")
    s = sync.generate_signal(None, D, EMPTY)
    assert s.action == SignalAction.BUY
    assert s.confidence == pytest.approx(0.8)
    assert "bullish" in s.reasoning

    async def advisor(window, on_date, portfolio):
        return "Action: sell\nConfidence: 0.6"

    s = asyncio.run(AdvisorStrategy(advisor).generate_signal(None, D, EMPTY))
    assert s.action == SignalAction.SELL


# --- rule variants ---

def _window(strategy, closes, **extra):
    df = make_prices(closes)
    for k, v in extra.items():
        df[k] = v
    return strategy.compute_indicators(df)


def test_value_strategy():
    cheap = ValueStrategy(fundamentals={"pe_ratio": 10.0, "pb_ratio": 1.0})
    assert cheap.generate_signal(_window(cheap, [100.0, 95.0]), D, EMPTY).action == SignalAction.BUY
    assert cheap.generate_signal(_window(cheap, [95.0, 100.0]), D, EMPTY).action == SignalAction.HOLD
    rich = ValueStrategy(fundamentals={"pe_ratio": 30.0, "pb_ratio": 1.0})
    s = rich.generate_signal(_window(rich, [95.0, 100.0]), D, EMPTY)
    assert s.action == SignalAction.SELL
    assert s.target_position == 0.0
    no_data = ValueStrategy()
    assert no_data.generate_signal(_window(no_data, [100.0, 95.0]), D, EMPTY).action == SignalAction.HOLD


def test_trend_strategy_crossover():
    strategy = TrendStrategy(ma_short=2, ma_long=3, rsi_len=14)
    # short SMA crosses above long SMA on the last bar
    s = strategy.generate_signal(_window(strategy, [10.0, 9.0, 8.0, 7.0, 10.0]), D, EMPTY)
    assert s.action == SignalAction.BUY
    s = strategy.generate_signal(_window(strategy, [7.0, 8.0, 9.0, 10.0, 7.0]), D, EMPTY)
    assert s.action == SignalAction.SELL


def test_quant_strategy_band_reentry():
    strategy = QuantStrategy(period=5, deviation=1.0)
    closes = [100.0, 100.0, 100.0, 100.0, 100.0, 80.0, 99.0]
    assert strategy.generate_signal(_window(strategy, closes), D, EMPTY).action == SignalAction.BUY


def test_sentiment_strategy_from_scores_and_column():
    scores = {"2024-01-08": 0.9, "2024-01-09": 0.8, "2024-01-11": -1.0}
    strategy = SentimentStrategy(scores=scores)
    # the 2024-01-11 score is after the decision date and must be ignored
    assert strategy.generate_signal(None, D, EMPTY).action == SignalAction.BUY
    col = SentimentStrategy()
    window = _window(col, [100.0] * 5, sentiment=[-0.5] * 5)
    assert col.generate_signal(window, D, EMPTY).action == SignalAction.SELL


def test_risk_managed_holds_while_warming_up_and_sells_on_spike():
    strategy = RiskManagedStrategy(vol_window=5, range_window=3)
    assert strategy.generate_signal(_window(strategy, [100.0] * 3), D, EMPTY).action == SignalAction.HOLD
    s = strategy.generate_signal(_window(strategy, [100.0, 130.0, 80.0, 140.0, 70.0]), D, EMPTY)
    assert s.action == SignalAction.SELL


# --- factory ---

def test_strategy_kind_parse():
    assert StrategyKind.parse("risk_managed") is StrategyKind.RISK_MANAGED
    assert StrategyKind.parse("RiskManaged") is StrategyKind.RISK_MANAGED
    assert StrategyKind.parse("TREND") is StrategyKind.TREND
    with pytest.raises(StrategyResolutionError):
        StrategyKind.parse("astrology")


def test_create_every_kind():
    for kind in StrategyKind:
        strategy = create_strategy(kind)
        assert isinstance(strategy, BaseStrategy)
        assert strategy.name == kind.value


def test_create_mixed_with_components_and_weights():
    mixed = create_strategy("mixed", components=["trend", "quant"], weights={"trend": 3, "quant": 1})
    assert [c.name for c in mixed.children] == ["trend", "quant"]
    assert mixed.weights["trend"] == pytest.approx(0.75)


def test_create_with_bad_params():
    with pytest.raises(StrategyResolutionError):
        create_strategy("trend", {"no_such_param": 1})


def test_advisor_backed_trend_is_reparsed():
    strategy = create_strategy("trend", advisor=lambda w, d, p: "Decision: sell\nConfidence: 90%")
    assert isinstance(strategy, ReasoningParserStrategy)
    s = strategy.generate_signal(None, D, EMPTY)
    assert s.action == SignalAction.SELL
    assert s.confidence == pytest.approx(0.9)


def test_as_strategy_handles():
    trend = TrendStrategy()
    assert as_strategy(trend) is trend
    assert isinstance(as_strategy("quant"), QuantStrategy)
    fn = as_strategy(lambda w, d, p: None, name="fn")
    assert isinstance(fn, CallableStrategy)
    assert fn.name == "fn"
    with pytest.raises(StrategyResolutionError):
        as_strategy(42)
