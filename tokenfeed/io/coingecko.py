"""CoinGecko on-chain (pro) client.

Only active when both a base URL and an API key are configured. Response
shapes overlap with GeckoTerminal, but the CoinGecko gateway has returned
bare arrays and ``candles``/``trades`` envelopes too, so parsing stays loose.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..utils.validation import as_list, dig, first_present, to_float
from .geckoterminal import OHLCV_PERIODS, parse_ohlcv_payload, parse_trades_payload
from .provider import Notes, ProviderClient
from .schema import Candle, Trade


def _token_attributes(payload: Any) -> Optional[Mapping[str, Any]]:
    """Locate the attribute block in single-token or multi-token responses."""

    nested = dig(payload, "data", "attributes")
    if isinstance(nested, Mapping):
        return nested
    items = as_list(payload, ("data",))
    if items and isinstance(items[0], Mapping):
        first = items[0].get("attributes")
        return first if isinstance(first, Mapping) else items[0]
    data = dig(payload, "data")
    if isinstance(data, Mapping) and data:
        return data
    if isinstance(payload, Mapping) and payload:
        return payload
    return None


def parse_token_kpis(payload: Any) -> Dict[str, Any]:
    attrs = _token_attributes(payload)
    if attrs is None:
        return {}
    return {
        "priceUsd": to_float(attrs.get("price_usd")),
        "mcUsd": to_float(attrs.get("market_cap_usd")),
        "fdvUsd": to_float(first_present(attrs, ("fully_diluted_valuation_usd", "fdv_usd"))),
        "liqUsd": to_float(first_present(attrs, ("liquidity_usd", "total_reserve_in_usd"))),
        "vol24hUsd": to_float(attrs.get("volume_24h_usd"), to_float(dig(attrs, "volume_usd", "h24"))),
        "priceChange24hPct": to_float(dig(attrs, "price_change_percentage", "h24")),
        "priceChange1hPct": to_float(dig(attrs, "price_change_percentage", "h1")),
    }


class CoinGeckoClient(ProviderClient):
    provider_id = "cg"
    candle_capable = True
    trade_capable = True

    @property
    def available(self) -> bool:
        return super().available and bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["x-cg-pro-api-key"] = self.api_key
        return headers

    async def fetch_candles(
        self, network: str, pool_address: str, timeframe: str, *, notes: Optional[Notes] = None
    ) -> List[Candle]:
        period = OHLCV_PERIODS.get(timeframe)
        if period is None:
            return []
        segment, aggregate = period
        result = await self._get(
            f"onchain/networks/{network}/pools/{pool_address}/ohlcv/{segment}",
            {"aggregate": aggregate},
            notes=notes,
        )
        if not result.ok:
            return []
        return parse_ohlcv_payload(result.payload)

    async def fetch_trades(
        self, network: str, pool_address: str, limit: int, *, notes: Optional[Notes] = None
    ) -> List[Trade]:
        result = await self._get(
            f"onchain/networks/{network}/pools/{pool_address}/trades", notes=notes
        )
        if not result.ok:
            return []
        return parse_trades_payload(result.payload)[: max(0, int(limit))]

    async def fetch_token_kpis(
        self, network: str, address: str, *, notes: Optional[Notes] = None
    ) -> Dict[str, Any]:
        paths = (
            f"onchain/networks/{network}/tokens/{address}",
            f"onchain/networks/{network}/tokens/multi/{address}",
        )
        for path in paths:
            result = await self._get(path, notes=notes)
            if result.ok:
                kpis = parse_token_kpis(result.payload)
                if any(value is not None for value in kpis.values()):
                    return kpis
        return {}
