"""Timeframe tables: bucket widths, per-provider fallback order and rollup."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from ..io.schema import Candle

# Timeframes accepted by the public endpoints, finest first.
TIMEFRAMES: Tuple[str, ...] = ("1m", "5m", "15m", "1h", "4h", "1d")

INTERVAL_SECONDS: Dict[str, int] = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "1h": 3_600,
    "4h": 14_400,
    "1d": 86_400,
}

# Granularities each candle-capable provider can serve natively.
PROVIDER_TIMEFRAMES: Dict[str, Tuple[str, ...]] = {
    "gt": TIMEFRAMES,
    "cg": TIMEFRAMES,
}

# Coarser substitutes a provider may fall back to when the exact timeframe
# yields nothing. Providers without an entry only ever try the exact match.
FALLBACK_LADDERS: Dict[str, Tuple[str, ...]] = {
    "gt": ("5m", "15m", "1h"),
}


def is_timeframe(value: object) -> bool:
    return isinstance(value, str) and value in INTERVAL_SECONDS


def interval_to_seconds(interval: str) -> Optional[int]:
    """Return the bucket width for a timeframe, or ``None`` if it is unknown.

    Besides the table above this also understands ``<n>m``, ``<n>h`` and
    ``<n>d`` so callers can extend the set without touching the table.
    """

    interval = (interval or "").strip()
    if interval in INTERVAL_SECONDS:
        return INTERVAL_SECONDS[interval]
    try:
        value = int(interval[:-1])
        unit = interval[-1].lower()
    except (ValueError, IndexError):
        return None
    if value <= 0:
        return None
    if unit == "m":
        return value * 60
    if unit == "h":
        return value * 3_600
    if unit == "d":
        return value * 86_400
    return None


def fallback_order(requested: str, provider: str) -> List[str]:
    """Ordered timeframes to try against ``provider`` for ``requested``.

    Starts with the exact timeframe when the provider supports it, then walks
    the provider's ladder towards coarser granularities only.
    """

    supported = PROVIDER_TIMEFRAMES.get(provider, ())
    requested_seconds = interval_to_seconds(requested)
    if not supported or requested_seconds is None:
        return []

    order: List[str] = []
    if requested in supported:
        order.append(requested)
    for candidate in FALLBACK_LADDERS.get(provider, ()):
        if candidate in order or candidate not in supported:
            continue
        candidate_seconds = interval_to_seconds(candidate)
        if candidate_seconds is not None and candidate_seconds > requested_seconds:
            order.append(candidate)
    return order


def rollup(candles: Sequence[Candle], from_tf: str, to_tf: str) -> List[Candle]:
    """Bucket finer candles into a coarser timeframe.

    ``to_tf`` must be an exact multiple of ``from_tf``; otherwise the input is
    returned unchanged.
    """

    from_seconds = interval_to_seconds(from_tf)
    to_seconds = interval_to_seconds(to_tf)
    if (
        from_seconds is None
        or to_seconds is None
        or to_seconds <= from_seconds
        or to_seconds % from_seconds != 0
    ):
        return list(candles)

    buckets: Dict[int, Candle] = {}
    for candle in sorted(candles, key=lambda item: item.timestamp):
        bucket = (candle.timestamp // to_seconds) * to_seconds
        current = buckets.get(bucket)
        if current is None:
            buckets[bucket] = Candle(
                timestamp=bucket,
                open=candle.open,
                high=candle.high,
                low=candle.low,
                close=candle.close,
                volume=candle.volume,
            )
            continue
        current.high = max(current.high, candle.high)
        current.low = min(current.low, candle.low)
        current.close = candle.close
        if candle.volume is not None:
            current.volume = (current.volume or 0.0) + candle.volume
    return [buckets[key] for key in sorted(buckets)]
