"""GeckoTerminal client: pool OHLCV, pool trades and token pool listings."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..chains import is_gt_supported
from ..utils.time import to_unix_seconds
from ..utils.validation import as_list, dig, first_present, is_valid_address, to_float, to_str
from .provider import Notes, ProviderClient
from .schema import Candle, PoolSummary, TokenMeta, Trade, normalise_side, parse_candle_rows


# Timeframe -> (OHLCV path segment, aggregate)
OHLCV_PERIODS: Dict[str, Tuple[str, int]] = {
    "1m": ("minute", 1),
    "5m": ("minute", 5),
    "15m": ("minute", 15),
    "1h": ("hour", 1),
    "4h": ("hour", 4),
    "1d": ("day", 1),
}

OHLCV_LIMIT = 1000


def parse_ohlcv_payload(payload: Any) -> List[Candle]:
    rows = as_list(
        payload,
        ("data", "attributes", "ohlcv_list"),
        ("data",),
        ("candles",),
        (),
    )
    return parse_candle_rows(rows)


def parse_trade_record(item: Any) -> Optional[Trade]:
    """Parse one trade from GeckoTerminal-style JSON.

    Handles the ``{"attributes": {...}}`` envelope, flat objects with
    alternate field names and positional ``[ts, price, amount]`` rows. Rows
    without a usable timestamp or price are dropped.
    """

    if isinstance(item, (list, tuple)):
        if len(item) < 2:
            return None
        attrs: Mapping[str, Any] = {
            "timestamp": item[0],
            "price": item[1],
            "amount_base": item[2] if len(item) > 2 else None,
        }
    elif isinstance(item, Mapping):
        nested = item.get("attributes")
        attrs = nested if isinstance(nested, Mapping) else item
    else:
        return None

    timestamp = to_unix_seconds(
        first_present(attrs, ("block_timestamp", "timestamp", "ts", "time"))
    )
    if timestamp is None:
        return None

    side = normalise_side(first_present(attrs, ("kind", "side", "type")))
    if side == "sell":
        price_keys = ("price_from_in_usd", "price_to_in_usd")
        amount_keys = ("from_token_amount", "to_token_amount")
    else:
        price_keys = ("price_to_in_usd", "price_from_in_usd")
        amount_keys = ("to_token_amount", "from_token_amount")

    price = to_float(first_present(attrs, price_keys + ("price_usd", "priceUsd", "price")))
    if price is None or price < 0:
        return None

    amount_base = to_float(first_present(attrs, amount_keys + ("amount_base", "amount_base_token")))
    if amount_base is not None and amount_base < 0:
        amount_base = None
    amount_quote = to_float(first_present(attrs, ("volume_in_usd", "amount_usd", "amount_quote")))

    return Trade(
        timestamp=timestamp,
        side=side,
        price=price,
        amount_base=amount_base,
        amount_quote=amount_quote,
        transaction_hash=to_str(first_present(attrs, ("tx_hash", "transaction_hash", "txHash"))),
        wallet_address=to_str(first_present(attrs, ("tx_from_address", "wallet", "maker"))),
    )


def parse_trades_payload(payload: Any) -> List[Trade]:
    trades: List[Trade] = []
    for item in as_list(payload, ("data",), ("trades",), ()):
        trade = parse_trade_record(item)
        if trade is not None:
            trades.append(trade)
    return trades


def _split_pool_name(name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if not name or "/" not in name:
        return None, None
    base, _, rest = name.partition("/")
    quote = rest.strip().split(" ")[0] if rest.strip() else None
    return base.strip() or None, quote


def parse_pool(item: Any, chain: str) -> Optional[PoolSummary]:
    if not isinstance(item, Mapping):
        return None
    attrs = item.get("attributes") if isinstance(item.get("attributes"), Mapping) else {}
    name_base, name_quote = _split_pool_name(to_str(attrs.get("name")))
    dex = to_str(attrs.get("dex")) or to_str(dig(item, "relationships", "dex", "data", "id")) or to_str(
        attrs.get("name")
    ) or ""
    version = to_str(first_present(attrs, ("version", "dex_version")))
    pool_address = to_str(first_present(attrs, ("pool_address", "address")))
    pair_id = to_str(item.get("id")) or pool_address or ""
    return PoolSummary(
        pair_id=pair_id,
        dex=dex,
        chain=chain,
        version=version,
        base=to_str(dig(attrs, "base_token", "symbol")) or name_base,
        quote=to_str(dig(attrs, "quote_token", "symbol")) or name_quote,
        pool_address=pool_address if is_valid_address(pool_address) else None,
        liq_usd=to_float(first_present(attrs, ("reserve_in_usd", "reserve_usd"))),
        gt_supported=is_gt_supported(dex, version),
        price_usd=to_float(attrs.get("base_token_price_usd")),
        price_native=to_float(attrs.get("base_token_price_native_currency")),
        fdv_usd=to_float(attrs.get("fdv_usd")),
        market_cap_usd=to_float(attrs.get("market_cap_usd")),
        price_change_24h_pct=to_float(dig(attrs, "price_change_percentage", "h24")),
        volume_24h_usd=to_float(dig(attrs, "volume_usd", "h24")),
        created_at=to_unix_seconds(attrs.get("pool_created_at")),
    )


def parse_pools_payload(payload: Any, chain: str) -> List[PoolSummary]:
    pools: List[PoolSummary] = []
    for item in as_list(payload, ("data",), ()):
        pool = parse_pool(item, chain)
        if pool is not None:
            pools.append(pool)
    return pools


def parse_token_payload(payload: Any, address: str) -> Tuple[Optional[TokenMeta], Dict[str, Any]]:
    attrs = dig(payload, "data", "attributes")
    if not isinstance(attrs, Mapping):
        return None, {}
    token = TokenMeta(
        address=to_str(attrs.get("address")) or address,
        symbol=to_str(attrs.get("symbol"), "") or "",
        name=to_str(attrs.get("name"), "") or "",
        icon=to_str(attrs.get("image_url")),
    )
    kpis = {
        "priceUsd": to_float(attrs.get("price_usd")),
        "fdvUsd": to_float(attrs.get("fdv_usd")),
        "mcUsd": to_float(attrs.get("market_cap_usd")),
        "liqUsd": to_float(attrs.get("total_reserve_in_usd")),
        "vol24hUsd": to_float(dig(attrs, "volume_usd", "h24")),
    }
    return token, kpis


class GeckoTerminalClient(ProviderClient):
    provider_id = "gt"
    candle_capable = True
    trade_capable = True

    async def fetch_candles(
        self, network: str, pool_address: str, timeframe: str, *, notes: Optional[Notes] = None
    ) -> List[Candle]:
        period = OHLCV_PERIODS.get(timeframe)
        if period is None:
            return []
        segment, aggregate = period
        result = await self._get(
            f"networks/{network}/pools/{pool_address}/ohlcv/{segment}",
            {"aggregate": aggregate, "limit": OHLCV_LIMIT, "currency": "usd"},
            notes=notes,
        )
        if not result.ok:
            return []
        return parse_ohlcv_payload(result.payload)

    async def fetch_trades(
        self, network: str, pool_address: str, limit: int, *, notes: Optional[Notes] = None
    ) -> List[Trade]:
        result = await self._get(f"networks/{network}/pools/{pool_address}/trades", notes=notes)
        if not result.ok:
            return []
        return parse_trades_payload(result.payload)[: max(0, int(limit))]

    async def fetch_token_pools(self, network: str, address: str, chain: str) -> List[PoolSummary]:
        result = await self._get(f"networks/{network}/tokens/{address}/pools")
        if not result.ok:
            return []
        return parse_pools_payload(result.payload, chain)

    async def fetch_token(
        self, network: str, address: str
    ) -> Tuple[Optional[TokenMeta], Dict[str, Any]]:
        result = await self._get(f"networks/{network}/tokens/{address}")
        if not result.ok:
            return None, {}
        return parse_token_payload(result.payload, address)
