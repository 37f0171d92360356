"""
Sizing policy: Signal -> whole-share order.
Target exposure = target_position * equity; shares = floor(|target - current| / price),
with the buy price grossed up by fee_bps.
Without target_position: buy targets min(confidence, max_exposure), sell keeps
(1 - confidence) of the current exposure.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass

from strategy_backtester.core.types import Signal, SignalAction

logger = logging.getLogger("strategy_backtester.sizing")


@dataclass
class SizingResult:
    """Order implied by a signal, or the reason there is none."""
    allowed: bool
    action: SignalAction = SignalAction.HOLD
    shares: int = 0
    reason: str = ""


class PositionSizer:
    """Translates a signal into shares given price, equity and the current holding."""

    def __init__(self, min_confidence: float = 0.1, max_exposure: float = 1.0):
        if not 0.0 <= min_confidence <= 1.0:
            raise ValueError("min_confidence must be within [0, 1]")
        if not 0.0 < max_exposure <= 1.0:
            raise ValueError("max_exposure must be within (0, 1]")
        self.min_confidence = min_confidence
        self.max_exposure = max_exposure

    def target_fraction(self, signal: Signal, current_fraction: float) -> float:
        if signal.target_position is not None:
            return min(max(signal.target_position, 0.0), self.max_exposure)
        if signal.action == SignalAction.BUY:
            return min(signal.confidence, self.max_exposure)
        return current_fraction * (1.0 - signal.confidence)

    def size_order(
        self,
        signal: Signal,
        price: float,
        equity: float,
        current_shares: int,
        fee_bps: float = 0.0,
    ) -> SizingResult:
        """Buys are sized so shares plus the fee fit the target delta."""
        if signal.action == SignalAction.HOLD:
            return SizingResult(allowed=False, reason="hold")
        if signal.confidence < self.min_confidence:
            return SizingResult(
                allowed=False,
                reason=f"confidence {signal.confidence:.2f} < {self.min_confidence:.2f}",
            )
        if price <= 0 or equity <= 0:
            return SizingResult(allowed=False, reason="non-positive price or equity")

        current = current_shares * price
        target = self.target_fraction(signal, current / equity)
        delta = target * equity - current
        unit_cost = price * (1.0 + fee_bps / 10000.0) if delta > 0 else price
        shares = math.floor(abs(delta) / unit_cost)
        if shares <= 0:
            return SizingResult(allowed=False, reason="qty rounded to 0")
        action = SignalAction.BUY if delta > 0 else SignalAction.SELL
        return SizingResult(allowed=True, action=action, shares=shares)
