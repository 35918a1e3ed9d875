"""DexScreener client: token pair listings and pair trades."""
from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

from ..chains import chain_from_provider, is_gt_supported
from ..utils.time import to_unix_seconds
from ..utils.validation import as_list, dig, first_present, is_valid_address, to_float, to_str
from .provider import Notes, ProviderClient
from .schema import PoolSummary, TokenMeta, Trade, normalise_side

INFO_KEYS = ("imageUrl", "header", "openGraph", "description", "websites", "socials")


def pair_pool_address(pair: Mapping[str, Any]) -> Optional[str]:
    return to_str(
        first_present(pair, ("pairAddress", "liquidityPoolAddress"))
        or dig(pair, "pair", "contract")
        or dig(pair, "pair", "address")
    )


def parse_pair(pair: Any) -> Optional[PoolSummary]:
    if not isinstance(pair, Mapping):
        return None
    dex = to_str(pair.get("dexId"), "") or ""
    labels = pair.get("labels") if isinstance(pair.get("labels"), list) else []
    version = to_str(first_present(pair, ("dexVersion", "version"))) or (
        to_str(labels[0]) if labels else None
    )
    pool_address = pair_pool_address(pair)
    pair_id = (
        to_str(pair.get("pairId")) or to_str(dig(pair, "pair", "id")) or to_str(pair.get("pairAddress")) or ""
    )
    info_raw = pair.get("info") if isinstance(pair.get("info"), Mapping) else {}
    info = {key: info_raw[key] for key in INFO_KEYS if info_raw.get(key) is not None}
    created = to_unix_seconds(pair.get("pairCreatedAt"))
    return PoolSummary(
        pair_id=pair_id,
        dex=dex,
        chain=chain_from_provider(pair.get("chainId"), "ds"),
        version=version,
        base=to_str(dig(pair, "baseToken", "symbol")),
        quote=to_str(dig(pair, "quoteToken", "symbol")),
        pool_address=pool_address if is_valid_address(pool_address) else None,
        liq_usd=to_float(dig(pair, "liquidity", "usd"), to_float(pair.get("liquidityUsd"))),
        gt_supported=is_gt_supported(dex, version),
        price_usd=to_float(pair.get("priceUsd")),
        price_native=to_float(pair.get("priceNative")),
        fdv_usd=to_float(pair.get("fdv")),
        market_cap_usd=to_float(pair.get("marketCap")),
        price_change_24h_pct=to_float(dig(pair, "priceChange", "h24")),
        volume_24h_usd=to_float(dig(pair, "volume", "h24")),
        created_at=created,
        info=info,
    )


def parse_token_meta(payload: Any, address: str) -> TokenMeta:
    meta = dig(payload, "token")
    if not isinstance(meta, Mapping):
        pairs = as_list(payload, ("pairs",))
        meta = pairs[0].get("baseToken") if pairs and isinstance(pairs[0], Mapping) else None
    if not isinstance(meta, Mapping):
        meta = {}
    return TokenMeta(
        address=to_str(meta.get("address")) or address,
        symbol=to_str(meta.get("symbol"), "") or "",
        name=to_str(meta.get("name"), "") or "",
        icon=to_str(first_present(meta, ("icon", "imageUrl"))),
    )


def parse_trade(item: Any) -> Optional[Trade]:
    if not isinstance(item, Mapping):
        return None
    timestamp = to_unix_seconds(first_present(item, ("blockTimestamp", "timestamp", "ts", "time")))
    price = to_float(first_present(item, ("priceUsd", "price_usd", "price")))
    if timestamp is None or price is None or price < 0:
        return None
    amount_base = to_float(first_present(item, ("amountBase", "baseAmount", "amount0", "amount")))
    if amount_base is not None:
        amount_base = abs(amount_base)
    return Trade(
        timestamp=timestamp,
        side=normalise_side(first_present(item, ("type", "side", "kind"))),
        price=price,
        amount_base=amount_base,
        amount_quote=to_float(first_present(item, ("volumeUsd", "amountUsd", "amountQuote"))),
        transaction_hash=to_str(first_present(item, ("txnHash", "txHash", "transactionHash"))),
        wallet_address=to_str(first_present(item, ("maker", "wallet", "walletAddress"))),
    )


class DexScreenerClient(ProviderClient):
    provider_id = "ds"
    trade_capable = True

    async def fetch_trades(
        self, network: str, pool_address: str, limit: int, *, notes: Optional[Notes] = None
    ) -> List[Trade]:
        result = await self._get(f"dex/pairs/{network}/{pool_address}/trades", notes=notes)
        if not result.ok:
            return []
        trades: List[Trade] = []
        for item in as_list(result.payload, ("trades",), ("data",), ()):
            trade = parse_trade(item)
            if trade is not None:
                trades.append(trade)
        return trades[: max(0, int(limit))]

    async def fetch_token_pairs(self, address: str) -> Tuple[Optional[TokenMeta], List[PoolSummary]]:
        """Return token metadata plus every listed pair; ``(None, [])`` on failure."""

        result = await self._get(f"dex/tokens/{address}")
        if not result.ok:
            return None, []
        raw_pairs = as_list(result.payload, ("pairs",))
        if not raw_pairs:
            return None, []
        pools = [pool for pool in (parse_pair(pair) for pair in raw_pairs) if pool is not None]
        return parse_token_meta(result.payload, address), pools

