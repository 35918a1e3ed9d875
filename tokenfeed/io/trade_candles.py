"""Aggregate trade prints into OHLCV candles.

* Candles are keyed by ``bucket = floor(ts/Δ) * Δ`` where ``Δ`` is the candle
  width in seconds and ``ts`` the trade timestamp in seconds.
* The first trade of a bucket sets open/high/low/close; later trades widen
  the high/low and move the close. Trades are applied in timestamp order so
  "later" means later in time, not later in the provider's list.
* Volume is the sum of base amounts; trades without one still move the price
  but add nothing to the volume.

This is the chart's last fallback when no provider returns candles, so it
never raises: unusable trades are skipped and an empty input yields ``[]``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List

from ..utils.logging import get_logger
from .schema import Candle, Trade

LOGGER = get_logger(__name__)


@dataclass
class CandleState:
    """Mutable state accumulated for a single candle bucket."""

    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_candle(self, bucket: int) -> Candle:
        return Candle(
            timestamp=bucket,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


def _usable(trade: Trade) -> bool:
    price = trade.price
    return (
        isinstance(trade.timestamp, int)
        and isinstance(price, (int, float))
        and math.isfinite(price)
        and price >= 0
    )


def build_candles(trades: Iterable[Trade], bucket_seconds: int) -> List[Candle]:
    """Build OHLCV candles of ``bucket_seconds`` width from ``trades``."""

    width = int(bucket_seconds) if bucket_seconds else 0
    if width <= 0:
        LOGGER.debug("Refusing to bucket trades with width %s", bucket_seconds)
        return []

    usable = [trade for trade in trades if _usable(trade)]
    usable.sort(key=lambda trade: trade.timestamp)

    state: Dict[int, CandleState] = {}
    for trade in usable:
        bucket = (trade.timestamp // width) * width
        price = float(trade.price)
        amount = trade.amount_base
        volume = float(amount) if amount is not None and math.isfinite(amount) and amount >= 0 else 0.0
        current = state.get(bucket)
        if current is None:
            state[bucket] = CandleState(
                open=price, high=price, low=price, close=price, volume=volume
            )
            continue
        current.high = max(current.high, price)
        current.low = min(current.low, price)
        current.close = price
        current.volume += volume

    return [state[bucket].to_candle(bucket) for bucket in sorted(state)]


__all__ = ["CandleState", "build_candles"]
