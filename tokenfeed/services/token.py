"""Token-detail endpoint: metadata and KPIs merged field by field across providers."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..chains import to_provider_network
from ..config import Settings
from ..io.schema import PoolSummary
from ..utils.logging import get_logger
from ..utils.time import now_seconds
from ..utils.validation import is_valid_address
from .pairs import sort_pools
from .pipeline import EndpointResult, InvalidRequest, Pipeline, ProviderSet, Step, attempt_step

LOGGER = get_logger(__name__)

KPI_FIELDS = (
    "priceUsd",
    "priceNative",
    "liqUsd",
    "fdvUsd",
    "mcUsd",
    "priceChange24hPct",
    "vol24hUsd",
    "age",
)
INFO_FIELDS = ("imageUrl", "header", "description", "websites", "socials")


def merge_missing(target: Dict[str, Any], source: Mapping[str, Any], fields: tuple) -> int:
    """Copy ``fields`` from ``source`` that ``target`` lacks. First value wins."""

    filled = 0
    for key in fields:
        value = source.get(key)
        if value is None or value == [] or value == "":
            continue
        if target.get(key) is None:
            target[key] = value
            filled += 1
    return filled


def age_from(created_at: Optional[int], now: int) -> Optional[Dict[str, int]]:
    if created_at is None or created_at > now:
        return None
    elapsed = now - created_at
    return {"days": elapsed // 86_400, "hours": (elapsed % 86_400) // 3_600}


def kpis_from_pools(pools: List[PoolSummary], now: int) -> Dict[str, Any]:
    """KPIs read off the most liquid pool; age from the oldest pool."""

    if not pools:
        return {}
    top = max(pools, key=lambda pool: pool.liq_usd or 0.0)
    created = [pool.created_at for pool in pools if pool.created_at is not None]
    return {
        "priceUsd": top.price_usd,
        "priceNative": top.price_native,
        "liqUsd": top.liq_usd,
        "fdvUsd": top.fdv_usd,
        "mcUsd": top.market_cap_usd,
        "priceChange24hPct": top.price_change_24h_pct,
        "vol24hUsd": top.volume_24h_usd,
        "age": age_from(min(created), now) if created else None,
    }


class TokenPipeline(Pipeline):
    """Unlike the other endpoints every provider may contribute, so steps merge instead of short-circuiting."""

    name = "token"
    stages = ("validate", "check_chain_support", "collect_details", "respond")

    def __init__(self, *args, now: Optional[int] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.now = now_seconds() if now is None else int(now)
        self.address = ""
        self.info: Dict[str, Any] = {}
        self.kpis: Dict[str, Any] = {}
        self.pools: List[PoolSummary] = []
        self.contributors: List[str] = []

    def parse(self) -> None:
        self.chain = self.require("chain").lower()
        address = self.require("address")
        if not is_valid_address(address):
            raise InvalidRequest("address must be a 0x-prefixed 20 byte hex string")
        self.address = address

    @property
    def complete(self) -> bool:
        return (
            bool(self.pools)
            and all(self.kpis.get(key) is not None for key in KPI_FIELDS)
            and self.info.get("imageUrl") is not None
        )

    def detail_steps(self) -> List[Step[bool]]:
        steps: List[Step[bool]] = []
        runners = {"ds": self._from_dexscreener, "cg": self._from_coingecko, "gt": self._from_geckoterminal}
        for provider_id in ("ds", "cg", "gt"):
            client = self.providers.get(provider_id)
            if client is None:
                continue
            if not client.available:
                self.record.mark(f"{provider_id}:disabled")
                continue
            steps.append(Step(source=provider_id, run=runners[provider_id]))
        return steps

    def _absorb(
        self,
        provider_id: str,
        *,
        info: Optional[Mapping[str, Any]] = None,
        kpis: Optional[Mapping[str, Any]] = None,
        pools: Optional[List[PoolSummary]] = None,
    ) -> bool:
        filled = merge_missing(self.info, info or {}, INFO_FIELDS)
        filled += merge_missing(self.kpis, kpis or {}, KPI_FIELDS)
        if pools and not self.pools:
            self.pools = sort_pools(pools)
            filled += 1
        if filled and provider_id not in self.contributors:
            self.contributors.append(provider_id)
        return bool(filled)

    async def _from_dexscreener(self) -> bool:
        _, pools = await self.providers.ds.fetch_token_pairs(self.address)
        info: Dict[str, Any] = {}
        for pool in sort_pools(pools):
            merge_missing(info, pool.info, INFO_FIELDS)
        return self._absorb("ds", info=info, kpis=kpis_from_pools(pools, self.now), pools=pools)

    async def _from_coingecko(self) -> bool:
        network = to_provider_network(self.chain, "cg")
        if network is None:
            return False
        kpis = await self.providers.cg.fetch_token_kpis(network, self.address, notes=self.record.notes)
        return self._absorb("cg", kpis=kpis)

    async def _from_geckoterminal(self) -> bool:
        network = to_provider_network(self.chain, "gt")
        if network is None:
            return False
        gt = self.providers.gt
        token, kpis = await gt.fetch_token(network, self.address)
        info = {"imageUrl": token.icon} if token is not None and token.icon else {}
        pools = [] if self.pools else await gt.fetch_token_pools(network, self.address, self.chain)
        if pools:
            kpis = dict(kpis)
            merge_missing(kpis, kpis_from_pools(pools, self.now), KPI_FIELDS)
        return self._absorb("gt", info=info, kpis=kpis, pools=pools)

    async def collect_details(self) -> Optional[EndpointResult]:
        for step in self.detail_steps():
            if self.complete:
                LOGGER.debug("[token] details complete, skipping %s", step.source)
                break
            await attempt_step(step, self.record)
        if self.contributors:
            self.record.provider = self.contributors[0]
            self.record.notes["x-merged-from"] = ",".join(self.contributors)
        return None

    async def respond(self) -> EndpointResult:
        self.record.items = len(self.pools)
        body = {
            "info": dict(self.info),
            "kpis": {key: value for key, value in self.kpis.items() if value is not None},
            "pools": [pool.as_dict() for pool in self.pools],
            "provider": self.record.provider,
        }
        return self.reply(200, body)


async def fetch_token(
    params: Mapping[str, Optional[str]],
    providers: ProviderSet,
    settings: Settings,
    *,
    now: Optional[int] = None,
) -> EndpointResult:
    """Serve one ``/token`` request."""

    return await TokenPipeline(params, providers, settings, now=now).run()
