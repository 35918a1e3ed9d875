from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

import pytest

from tokenfeed.config import Settings
from tokenfeed.io.schema import Candle, PoolSummary, TokenMeta, Trade
from tokenfeed.services import ProviderSet

NOW = 1_700_000_000
POOL = "0x" + "ab" * 20
TOKEN = "0x" + "cd" * 20


class StubProvider:
    """In-memory stand-in for a provider client that records every call."""

    def __init__(
        self,
        provider_id: str,
        *,
        candles: Optional[Dict[str, List[Candle]]] = None,
        trades: Optional[List[Trade]] = None,
        pools: Optional[List[PoolSummary]] = None,
        token: Optional[TokenMeta] = None,
        kpis: Optional[Dict[str, Any]] = None,
        available: bool = True,
        candle_capable: bool = True,
        trade_capable: bool = True,
        fail: bool = False,
    ) -> None:
        self.provider_id = provider_id
        self.candles = candles or {}
        self.trades = trades or []
        self.pools = pools or []
        self.token = token
        self.kpis = kpis or {}
        self.available = available
        self.candle_capable = candle_capable
        self.trade_capable = trade_capable
        self.fail = fail
        self.calls: List[Tuple[Any, ...]] = []

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        if self.fail:
            raise RuntimeError(f"{self.provider_id} exploded")

    def calls_to(self, method: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == method]

    async def fetch_candles(self, network, pool_address, timeframe, *, notes=None):
        self._record("candles", network, pool_address, timeframe)
        return list(self.candles.get(timeframe, []))

    async def fetch_trades(self, network, pool_address, limit, *, notes=None):
        self._record("trades", network, pool_address, limit)
        return list(self.trades)

    async def fetch_token_pairs(self, address):
        self._record("token_pairs", address)
        return self.token, [_copy_pool(pool) for pool in self.pools]

    async def fetch_token_pools(self, network, address, chain):
        self._record("token_pools", network, address, chain)
        return [_copy_pool(pool) for pool in self.pools]

    async def fetch_token(self, network, address):
        self._record("token", network, address)
        return self.token, dict(self.kpis)

    async def fetch_token_kpis(self, network, address, *, notes=None):
        self._record("token_kpis", network, address)
        return dict(self.kpis)


def _copy_pool(pool: PoolSummary) -> PoolSummary:
    return replace(pool, info=dict(pool.info))


def make_candles(start: int, count: int, width: int = 60, price: float = 1.0) -> List[Candle]:
    candles = []
    for idx in range(count):
        value = price + idx * 0.01
        candles.append(
            Candle(
                timestamp=start + idx * width,
                open=value,
                high=value + 0.005,
                low=value - 0.005,
                close=value + 0.002,
                volume=10.0,
            )
        )
    return candles


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def make_providers():
    def factory(**overrides: StubProvider) -> ProviderSet:
        return ProviderSet(
            gt=overrides.get("gt") or StubProvider("gt"),
            cg=overrides.get("cg") or StubProvider("cg"),
            ds=overrides.get("ds") or StubProvider("ds", candle_capable=False),
        )

    return factory
