"""
Free-text reasoning -> structured action / confidence / position.
Understands an embedded JSON object or `key: value` lines, e.g.

    Action: BUY
    Confidence: 72%
    Position: 40%
"""

from __future__ import annotations
import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from strategy_backtester.core.types import SignalAction

_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)
_ACTION_RE = re.compile(r"\b(?:action|signal|recommendation|decision)\s*[:=]\s*\**\s*(buy|sell|hold)\b", re.I)
_CONFIDENCE_RE = re.compile(r"\bconfidence\s*[:=]\s*\**\s*(\d+(?:\.\d+)?)\s*(%)?", re.I)
_POSITION_RE = re.compile(
    r"\b(?:target[ _]?position|position(?:[ _]size)?|allocation)\s*[:=]\s*\**\s*(\d+(?:\.\d+)?)\s*(%)?",
    re.I,
)
_BUY_WORDS = ("buy", "bullish", "uptrend", "accumulate", "long")
_SELL_WORDS = ("sell", "bearish", "downtrend", "reduce", "exit")


@dataclass(frozen=True)
class ParsedReasoning:
    action: SignalAction
    confidence: Optional[float] = None
    position: Optional[float] = None


def normalise_fraction(value: Any, percent: bool = False) -> float:
    """Map 0..1 or 0..100 (or an explicit percent) onto [0, 1]."""
    f = float(value)
    if percent or f > 1.0:
        f = f / 100.0
    return max(0.0, min(1.0, f))


def _from_json(text: str) -> Optional[ParsedReasoning]:
    match = _JSON_RE.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    raw_action = data.get("action", data.get("signal"))
    if not isinstance(raw_action, str) or raw_action.strip().lower() not in ("buy", "sell", "hold"):
        return None
    confidence = data.get("confidence")
    position = data.get("targetPosition", data.get("target_position", data.get("position")))
    return ParsedReasoning(
        action=SignalAction(raw_action.strip().lower()),
        confidence=normalise_fraction(confidence) if isinstance(confidence, (int, float)) else None,
        position=normalise_fraction(position) if isinstance(position, (int, float)) else None,
    )


def parse_reasoning(text: str) -> ParsedReasoning:
    """Strict parse. Raises ValueError when no explicit action is present."""
    if not text or not text.strip():
        raise ValueError("empty reasoning text")
    parsed = _from_json(text)
    if parsed is not None:
        return parsed
    action = _ACTION_RE.search(text)
    if not action:
        raise ValueError("no action found in reasoning text")
    confidence = _CONFIDENCE_RE.search(text)
    position = _POSITION_RE.search(text)
    return ParsedReasoning(
        action=SignalAction(action.group(1).lower()),
        confidence=normalise_fraction(confidence.group(1), bool(confidence.group(2))) if confidence else None,
        position=normalise_fraction(position.group(1), bool(position.group(2))) if position else None,
    )


def keyword_signal(text: str, default_confidence: float = 0.5) -> ParsedReasoning:
    """
    Lenient reading for unstructured advice: explicit fields if present,
    otherwise the first buy/sell keyword, otherwise hold.
    """
    try:
        parsed = parse_reasoning(text)
        if parsed.confidence is None:
            return ParsedReasoning(parsed.action, default_confidence, parsed.position)
        return parsed
    except ValueError:
        pass
    lowered = (text or "").lower()
    hits = []
    for word in _BUY_WORDS:
        idx = re.search(rf"\b{word}\b", lowered)
        if idx:
            hits.append((idx.start(), SignalAction.BUY))
    for word in _SELL_WORDS:
        idx = re.search(rf"\b{word}\b", lowered)
        if idx:
            hits.append((idx.start(), SignalAction.SELL))
    if not hits:
        return ParsedReasoning(SignalAction.HOLD, 0.0)
    hits.sort(key=lambda h: h[0])
    confidence = _CONFIDENCE_RE.search(text)
    conf = normalise_fraction(confidence.group(1), bool(confidence.group(2))) if confidence else default_confidence
    return ParsedReasoning(hits[0][1], conf)
