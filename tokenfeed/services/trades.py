"""Trades endpoint: recent swap prints from the first provider that has any."""
from __future__ import annotations

from typing import List, Mapping, Optional

from ..chains import to_provider_network
from ..config import Settings
from ..io.provider import ProviderClient
from ..io.schema import Trade
from ..utils.logging import get_logger
from ..utils.time import now_seconds
from ..utils.validation import is_valid_address, to_float, to_int
from .pipeline import EndpointResult, InvalidRequest, Pipeline, ProviderSet, Step, run_steps

LOGGER = get_logger(__name__)

TRADE_PROVIDERS = ("ds", "gt", "cg")


def select_trades(
    trades: List[Trade],
    *,
    limit: int,
    window_hours: Optional[float] = None,
    now: Optional[int] = None,
) -> List[Trade]:
    """Newest-first trades inside the window, capped at ``limit``."""

    selected = trades
    if window_hours is not None:
        reference = now_seconds() if now is None else int(now)
        # Windows longer than the epoch keep everything.
        cutoff = reference - int(min(window_hours * 3_600, reference))
        selected = [trade for trade in selected if trade.timestamp >= cutoff]
    selected = sorted(selected, key=lambda trade: trade.timestamp, reverse=True)
    return selected[:limit]


class TradesPipeline(Pipeline):
    name = "trades"
    stages = ("validate", "check_chain_support", "try_trade_providers", "respond")

    def __init__(self, *args, now: Optional[int] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.now = now
        self.trades: List[Trade] = []
        self.pair_id = ""
        self.pool_address: Optional[str] = None
        self.forced: Optional[str] = None
        self.limit = self.settings.trades.default_limit
        self.window_hours: Optional[float] = None

    def parse(self) -> None:
        self.pair_id = self.require("pairId")
        self.chain = self.require("chain").lower()
        forced = self.param("provider")
        if forced is not None and forced not in TRADE_PROVIDERS:
            raise InvalidRequest(f"unknown provider '{forced}'")
        self.forced = forced

        raw_limit = self.param("limit")
        if raw_limit is not None:
            limit = to_int(raw_limit)
            if limit is None:
                raise InvalidRequest("limit must be an integer")
            self.limit = max(1, min(limit, self.settings.trades.max_limit))

        raw_window = self.param("window")
        if raw_window is not None:
            window = to_float(raw_window)
            if window is None or window <= 0:
                raise InvalidRequest("window must be a positive number of hours")
            self.window_hours = window

        pool = self.param("poolAddress")
        self.pool_address = pool if is_valid_address(pool) else None

    def trade_steps(self) -> List[Step[List[Trade]]]:
        steps: List[Step[List[Trade]]] = []
        for provider_id in TRADE_PROVIDERS:
            if self.forced is not None and provider_id != self.forced:
                continue
            client: Optional[ProviderClient] = self.providers.get(provider_id)
            if client is None or not client.trade_capable:
                continue
            if not client.available:
                self.record.mark(f"{provider_id}:disabled")
                continue
            network = to_provider_network(self.chain, provider_id)
            target = self.pair_id if provider_id == "ds" else self.pool_address
            if network is None or target is None:
                continue
            steps.append(Step(source=provider_id, run=self._runner(client, network, target)))
        return steps

    def _runner(self, client: ProviderClient, network: str, target: str):
        async def run() -> List[Trade]:
            trades = await client.fetch_trades(
                network, target, self.limit, notes=self.record.notes
            )
            return select_trades(
                trades, limit=self.limit, window_hours=self.window_hours, now=self.now
            )

        return run

    async def try_trade_providers(self) -> Optional[EndpointResult]:
        step, trades = await run_steps(self.trade_steps(), self.record)
        if step is not None and trades:
            self.trades = trades
            self.record.provider = step.source
        else:
            LOGGER.debug("[trades] no provider returned trades for %s on %s", self.pair_id, self.chain)
        return None

    async def respond(self) -> EndpointResult:
        self.record.items = len(self.trades)
        body = {
            "pairId": self.pair_id,
            "trades": [trade.as_dict() for trade in self.trades],
            "provider": self.record.provider,
        }
        return self.reply(200, body)


async def fetch_trades(
    params: Mapping[str, Optional[str]],
    providers: ProviderSet,
    settings: Settings,
    *,
    now: Optional[int] = None,
) -> EndpointResult:
    """Serve one ``/trades`` request."""

    return await TradesPipeline(params, providers, settings, now=now).run()
