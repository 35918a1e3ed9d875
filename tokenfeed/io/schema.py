"""Provider-neutral entities shared by the provider clients and services.

Every provider client converts its raw JSON into these types at its boundary,
so nothing past the ``io`` layer sees a provider-specific field name or a
millisecond timestamp.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..utils.time import to_unix_seconds
from ..utils.validation import first_present, to_float

TRADE_SIDES = ("buy", "sell")


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(slots=True)
class Candle:
    """A single OHLC bar keyed by its bucket start in unix seconds."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "timestamp": self.timestamp,
                "open": self.open,
                "high": self.high,
                "low": self.low,
                "close": self.close,
                "volume": self.volume,
            }
        )


@dataclass(slots=True)
class Trade:
    """One executed swap print."""

    timestamp: int
    side: str
    price: float
    amount_base: Optional[float] = None
    amount_quote: Optional[float] = None
    transaction_hash: Optional[str] = None
    wallet_address: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "timestamp": self.timestamp,
                "side": self.side,
                "price": self.price,
                "amountBase": self.amount_base,
                "amountQuote": self.amount_quote,
                "transactionHash": self.transaction_hash,
                "walletAddress": self.wallet_address,
            }
        )


@dataclass(slots=True)
class TokenMeta:
    address: str
    symbol: str = ""
    name: str = ""
    icon: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact(
            {"address": self.address, "symbol": self.symbol, "name": self.name, "icon": self.icon}
        )


@dataclass(slots=True)
class PoolSummary:
    """Lightweight descriptor of one trading venue for a token."""

    pair_id: str
    dex: str
    chain: str
    base: Optional[str] = None
    quote: Optional[str] = None
    version: Optional[str] = None
    pool_address: Optional[str] = None
    liq_usd: Optional[float] = None
    gt_supported: bool = False
    price_usd: Optional[float] = None
    price_native: Optional[float] = None
    fdv_usd: Optional[float] = None
    market_cap_usd: Optional[float] = None
    price_change_24h_pct: Optional[float] = None
    volume_24h_usd: Optional[float] = None
    created_at: Optional[int] = None
    info: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "pairId": self.pair_id,
                "dex": self.dex,
                "version": self.version,
                "base": self.base,
                "quote": self.quote,
                "chain": self.chain,
                "poolAddress": self.pool_address,
                "liqUsd": self.liq_usd,
                "gtSupported": self.gt_supported,
                "priceUsd": self.price_usd,
                "priceNative": self.price_native,
                "fdv": self.fdv_usd,
                "marketCap": self.market_cap_usd,
                "priceChange24hPct": self.price_change_24h_pct,
                "volume24hUsd": self.volume_24h_usd,
                "pairCreatedAt": self.created_at,
                "info": self.info or None,
            }
        )


def parse_candle_row(row: Mapping[str, Any] | Sequence[Any]) -> Candle | None:
    """Convert one raw candle row (positional or keyed) into a :class:`Candle`.

    Returns ``None`` when the timestamp or any price cannot be parsed. A bad
    volume is dropped rather than rejecting the row.
    """

    if isinstance(row, Mapping):
        raw_time = first_present(row, ("timestamp", "t", "time", "ts", "openTime", "open_time"))
        raw_open = first_present(row, ("open", "o"))
        raw_high = first_present(row, ("high", "h"))
        raw_low = first_present(row, ("low", "l"))
        raw_close = first_present(row, ("close", "c"))
        raw_volume = first_present(row, ("volume", "v", "volume_usd"))
    elif isinstance(row, Sequence) and not isinstance(row, (str, bytes)):
        if len(row) < 5:
            return None
        raw_time, raw_open, raw_high, raw_low, raw_close = row[:5]
        raw_volume = row[5] if len(row) > 5 else None
    else:
        return None

    timestamp = to_unix_seconds(raw_time)
    prices = [to_float(raw_open), to_float(raw_high), to_float(raw_low), to_float(raw_close)]
    if timestamp is None or any(price is None for price in prices):
        return None

    volume = to_float(raw_volume)
    if volume is not None and (volume < 0 or not math.isfinite(volume)):
        volume = None

    open_price, high_price, low_price, close_price = prices  # type: ignore[misc]
    return Candle(
        timestamp=timestamp,
        open=float(open_price),
        high=float(high_price),
        low=float(low_price),
        close=float(close_price),
        volume=volume,
    )


def parse_candle_rows(rows: Sequence[Any]) -> List[Candle]:
    candles: List[Candle] = []
    for row in rows:
        candle = parse_candle_row(row)
        if candle is not None:
            candles.append(candle)
    return candles


def normalise_side(value: Any) -> str:
    """Map provider trade-kind labels onto ``buy``/``sell``; unknown -> ``buy``."""

    text = str(value or "").strip().lower()
    if text in ("sell", "s", "ask"):
        return "sell"
    return "buy"
