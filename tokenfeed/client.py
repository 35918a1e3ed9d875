"""Async consumer of the aggregator endpoints with short-TTL memoisation.

Mirrors what the chart frontend does: read the diagnostic headers into a
:class:`FetchMeta`, cache good answers for one polling cycle, and serve a
coarser OHLC timeframe from a cached finer one instead of refetching.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import httpx

from .io.http import ClientFactory
from .io.schema import parse_candle_rows
from .services.cache import ResponseCache, TimeframeMemory, cache_key
from .utils.logging import get_logger
from .utils.timeframes import TIMEFRAMES, interval_to_seconds, rollup

LOGGER = get_logger(__name__)

META_HEADERS = {
    "provider": "x-provider",
    "tried": "x-fallbacks-tried",
    "effective_tf": "x-effective-tf",
    "items": "x-items",
    "invalid_pool": "x-invalid-pool",
    "cg_auth": "x-cg-auth",
    "synthesized_from": "x-synthesized-from",
}


@dataclass(slots=True)
class FetchMeta:
    provider: Optional[str] = "none"
    tried: Optional[str] = None
    effective_tf: Optional[str] = None
    items: Optional[str] = None
    invalid_pool: Optional[str] = None
    cg_auth: Optional[str] = None
    synthesized_from: Optional[str] = None
    rolled_up_from: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "FetchMeta":
        return cls(**{attr: headers.get(header) for attr, header in META_HEADERS.items()})


@dataclass(slots=True)
class ApiResult:
    data: Dict[str, Any]
    meta: FetchMeta = field(default_factory=FetchMeta)
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return self.status_code == 200 and "error" not in self.data


class TokenFeedClient:
    def __init__(
        self,
        base_url: str,
        *,
        cache: Optional[ResponseCache] = None,
        tf_memory: Optional[TimeframeMemory] = None,
        timeout: float = 8.0,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else ResponseCache()
        self.tf_memory = tf_memory if tf_memory is not None else TimeframeMemory()
        self.timeout = timeout
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(timeout=timeout))

    async def _get(self, path: str, params: Mapping[str, Any]) -> ApiResult:
        query = {key: value for key, value in params.items() if value is not None}
        try:
            async with self._client_factory() as client:
                response = await client.get(f"{self.base_url}/{path}", params=query)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Request to /%s failed: %s", path, exc)
            return ApiResult(data={"error": "upstream_error", "provider": "none"}, status_code=0)
        if not isinstance(data, dict):
            data = {"error": "upstream_error", "provider": "none"}
        return ApiResult(
            data=data, meta=FetchMeta.from_headers(response.headers), status_code=response.status_code
        )

    async def _cached(self, key: str, path: str, params: Mapping[str, Any]) -> ApiResult:
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        result = await self._get(path, params)
        if result.ok:
            self.cache.set(key, result)
        return result

    def _rollup_from_cache(self, prefix: str, tf: str) -> Optional[ApiResult]:
        target = interval_to_seconds(tf)
        if target is None:
            return None
        for finer in TIMEFRAMES:
            width = interval_to_seconds(finer)
            if width is None or width >= target or target % width:
                continue
            cached: Optional[ApiResult] = self.cache.get(f"{prefix}:{finer}")
            if cached is None or not cached.data.get("candles"):
                continue
            served = cached.data.get("effectiveTf") or finer
            served_width = interval_to_seconds(served)
            if served_width is None or target % served_width or served_width >= target:
                continue
            candles = rollup(parse_candle_rows(cached.data["candles"]), served, tf)
            data = dict(cached.data)
            data.update(
                tf=tf,
                effectiveTf=tf,
                candles=[candle.as_dict() for candle in candles],
            )
            meta = replace(cached.meta, effective_tf=tf, items=str(len(candles)), rolled_up_from=served)
            return ApiResult(data=data, meta=meta)
        return None

    async def ohlc(
        self,
        *,
        pair_id: str,
        pool_address: str,
        chain: str,
        tf: str,
        provider: Optional[str] = None,
    ) -> ApiResult:
        prefix = cache_key("ohlc", chain, pair_id, pool_address, provider)
        key = f"{prefix}:{tf}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        # Rolled-up results are derived from a cached entry and are not re-cached.
        rolled = self._rollup_from_cache(prefix, tf)
        if rolled is not None:
            return rolled
        result = await self._cached(
            key,
            "ohlc",
            {"pairId": pair_id, "chain": chain, "poolAddress": pool_address, "tf": tf, "provider": provider},
        )
        if result.ok:
            result.data.setdefault("candles", [])
            served_by = result.data.get("provider")
            if served_by and served_by != "none":
                self.tf_memory.set(pair_id, served_by, tf)
        return result

    async def trades(
        self,
        *,
        pair_id: str,
        pool_address: str,
        chain: str,
        limit: Optional[int] = None,
        window: Optional[float] = None,
        provider: Optional[str] = None,
    ) -> ApiResult:
        key = cache_key("trades", chain, pair_id, pool_address, limit, window, provider)
        result = await self._cached(
            key,
            "trades",
            {
                "pairId": pair_id,
                "chain": chain,
                "poolAddress": pool_address,
                "limit": limit,
                "window": window,
                "provider": provider,
            },
        )
        if result.ok:
            result.data.setdefault("trades", [])
        return result

    async def pairs(self, chain: str, address: str, provider: Optional[str] = None) -> ApiResult:
        key = cache_key("pairs", chain, address, provider)
        return await self._cached(key, "pairs", {"chain": chain, "address": address, "provider": provider})

    async def token(self, chain: str, address: str) -> ApiResult:
        key = cache_key("token", chain, address)
        return await self._cached(key, "token", {"chain": chain, "address": address})

    def preferred_timeframe(self, pair_id: str, provider: str, default: str = "1m") -> str:
        return self.tf_memory.get(pair_id, provider) or default
