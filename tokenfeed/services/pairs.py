"""Pairs endpoint: every pool trading a token, with missing addresses backfilled."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from ..chains import to_provider_network
from ..config import Settings
from ..io.schema import PoolSummary, TokenMeta
from ..utils.logging import get_logger
from ..utils.validation import is_valid_address
from .pipeline import EndpointResult, InvalidRequest, Pipeline, ProviderSet, Step, run_steps

LOGGER = get_logger(__name__)

PAIRS_PROVIDERS = ("ds", "gt")


@dataclass(slots=True)
class PoolListing:
    token: TokenMeta
    pools: List[PoolSummary] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.pools)


def sort_pools(pools: List[PoolSummary]) -> List[PoolSummary]:
    """GeckoTerminal-supported pools first, then by USD liquidity descending."""

    return sorted(pools, key=lambda pool: (not pool.gt_supported, -(pool.liq_usd or 0.0)))


def _dex_matches(candidate: str, dex: str) -> bool:
    candidate, dex = candidate.lower(), dex.lower()
    return bool(dex) and (candidate == dex or candidate.startswith(f"{dex}_"))


def match_pool(pool: PoolSummary, candidates: List[PoolSummary]) -> Optional[PoolSummary]:
    """Find the listing in ``candidates`` for the same DEX and base/quote symbols."""

    for candidate in candidates:
        if (
            _dex_matches(candidate.dex, pool.dex)
            and candidate.base == pool.base
            and candidate.quote == pool.quote
        ):
            return candidate
    return None


def backfill_pools(pools: List[PoolSummary], secondary: List[PoolSummary]) -> int:
    """Fill missing pool addresses and liquidity in place; return how many pools changed."""

    changed = 0
    for pool in pools:
        match = match_pool(pool, secondary)
        if match is None:
            continue
        touched = False
        if pool.pool_address is None and is_valid_address(match.pool_address):
            pool.pool_address = match.pool_address
            touched = True
        if pool.liq_usd is None and match.liq_usd is not None:
            pool.liq_usd = match.liq_usd
            touched = True
        changed += int(touched)
    return changed


class PairsPipeline(Pipeline):
    name = "pairs"
    stages = ("validate", "check_chain_support", "try_listing_providers", "respond")

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.address = ""
        self.forced: Optional[str] = None
        self.listing: Optional[PoolListing] = None

    def parse(self) -> None:
        self.chain = self.require("chain").lower()
        address = self.require("address")
        if not is_valid_address(address):
            raise InvalidRequest("address must be a 0x-prefixed 20 byte hex string")
        self.address = address
        forced = self.param("provider")
        if forced is not None and forced not in PAIRS_PROVIDERS:
            raise InvalidRequest(f"unknown provider '{forced}'")
        self.forced = forced

    def listing_steps(self) -> List[Step[PoolListing]]:
        steps: List[Step[PoolListing]] = []
        for provider_id in PAIRS_PROVIDERS:
            if self.forced is not None and provider_id != self.forced:
                continue
            client = self.providers.get(provider_id)
            if client is None or not client.available:
                continue
            runner = self._from_dexscreener if provider_id == "ds" else self._from_geckoterminal
            steps.append(Step(source=provider_id, run=runner))
        return steps

    async def _from_dexscreener(self) -> Optional[PoolListing]:
        token, pools = await self.providers.ds.fetch_token_pairs(self.address)
        if not pools:
            return None
        if any(pool.pool_address is None for pool in pools):
            await self._backfill(pools)
        return PoolListing(token=token or TokenMeta(address=self.address), pools=sort_pools(pools))

    async def _backfill(self, pools: List[PoolSummary]) -> None:
        gt = self.providers.gt
        network = to_provider_network(self.chain, "gt")
        if network is None or not gt.available:
            return
        self.record.mark("gt-backfill")
        secondary = await gt.fetch_token_pools(network, self.address, self.chain)
        changed = backfill_pools(pools, secondary)
        LOGGER.debug("[pairs] backfilled %s of %s pools from gt", changed, len(pools))
        if changed:
            self.record.notes["x-backfilled"] = str(changed)

    async def _from_geckoterminal(self) -> Optional[PoolListing]:
        gt = self.providers.gt
        network = to_provider_network(self.chain, "gt")
        if network is None:
            return None
        pools = await gt.fetch_token_pools(network, self.address, self.chain)
        if not pools:
            return None
        token, _ = await gt.fetch_token(network, self.address)
        return PoolListing(token=token or TokenMeta(address=self.address), pools=sort_pools(pools))

    async def try_listing_providers(self) -> Optional[EndpointResult]:
        step, listing = await run_steps(self.listing_steps(), self.record)
        if step is not None and listing:
            self.listing = listing
            self.record.provider = step.source
        return None

    async def respond(self) -> EndpointResult:
        listing = self.listing or PoolListing(token=TokenMeta(address=self.address))
        self.record.items = len(listing.pools)
        body = {
            "token": listing.token.as_dict(),
            "pools": [pool.as_dict() for pool in listing.pools],
            "provider": self.record.provider,
        }
        return self.reply(200, body)


async def fetch_pairs(
    params: Mapping[str, Optional[str]],
    providers: ProviderSet,
    settings: Settings,
) -> EndpointResult:
    """Serve one ``/pairs`` request."""

    return await PairsPipeline(params, providers, settings).run()
