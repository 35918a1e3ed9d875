"""OHLC endpoint: provider candles with timeframe fallback, then trade synthesis."""
from __future__ import annotations

import math
from typing import Iterable, List, Mapping, Optional

from ..chains import to_provider_network
from ..config import Settings
from ..io.provider import ProviderClient
from ..io.schema import Candle
from ..io.trade_candles import build_candles
from ..utils.logging import get_logger
from ..utils.time import now_seconds
from ..utils.timeframes import fallback_order, interval_to_seconds, is_timeframe
from ..utils.validation import is_valid_address
from .pipeline import EndpointResult, InvalidRequest, Pipeline, ProviderSet, Step, run_steps

LOGGER = get_logger(__name__)

CANDLE_PROVIDERS = ("gt", "cg")
SYNTHESIS_PROVIDERS = ("cg", "gt", "ds")
PRICE_DECIMALS = 12


def _round(value: float) -> float:
    return round(value, PRICE_DECIMALS)


def sanitize_candles(
    candles: Iterable[Candle],
    *,
    now: Optional[int] = None,
    future_tolerance: int = 60,
) -> List[Candle]:
    """Repair and order a candle series.

    Drops non-finite rows and rows too far in the future, swaps an inverted
    high/low, clamps open/close into the range, rounds to 12 decimals and
    keeps the last row for any duplicated timestamp.
    """

    horizon = (now_seconds() if now is None else int(now)) + future_tolerance
    by_time = {}
    for candle in candles:
        values = (candle.open, candle.high, candle.low, candle.close)
        if not all(isinstance(value, (int, float)) and math.isfinite(value) for value in values):
            continue
        if candle.timestamp > horizon:
            continue
        high, low = candle.high, candle.low
        if high < low:
            high, low = low, high
        open_price = min(max(candle.open, low), high)
        close_price = min(max(candle.close, low), high)
        volume = candle.volume
        if volume is not None and (not math.isfinite(volume) or volume < 0):
            volume = None
        by_time[int(candle.timestamp)] = Candle(
            timestamp=int(candle.timestamp),
            open=_round(open_price),
            high=_round(high),
            low=_round(low),
            close=_round(close_price),
            volume=_round(volume) if volume is not None else None,
        )
    return [by_time[ts] for ts in sorted(by_time)]


class OHLCPipeline(Pipeline):
    """validate -> check_chain_support -> try_candle_providers -> try_trade_synthesis -> respond."""

    name = "ohlc"
    stages = (
        "validate",
        "check_chain_support",
        "try_candle_providers",
        "try_trade_synthesis",
        "respond",
    )

    def __init__(self, *args, now: Optional[int] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.now = now
        self.candles: List[Candle] = []
        self.pair_id = ""
        self.tf = ""
        self.pool_address: Optional[str] = None
        self.forced: Optional[str] = None
        self.gt_supported = True

    def parse(self) -> None:
        self.pair_id = self.require("pairId")
        self.tf = self.require("tf")
        self.chain = self.require("chain").lower()
        if not is_timeframe(self.tf):
            raise InvalidRequest(f"unknown timeframe '{self.tf}'")
        forced = self.param("provider")
        if forced is not None and forced not in ("gt", "cg", "ds"):
            raise InvalidRequest(f"unknown provider '{forced}'")
        self.forced = forced
        self.gt_supported = (self.param("gtSupported") or "true").lower() != "false"
        pool = self.param("poolAddress")
        if is_valid_address(pool):
            self.pool_address = pool
        else:
            self.record.notes["x-invalid-pool"] = "1"

    # ------------------------------------------------------------ selection
    def _allowed(self, provider_id: str) -> bool:
        if self.forced is not None:
            return provider_id == self.forced
        if provider_id == "gt":
            return self.gt_supported
        return True

    def _client(self, provider_id: str) -> Optional[ProviderClient]:
        if not self._allowed(provider_id):
            return None
        client: Optional[ProviderClient] = self.providers.get(provider_id)
        if client is None:
            return None
        if not client.available:
            self.record.mark(f"{provider_id}:disabled")
            return None
        return client

    def _sanitize(self, candles: Iterable[Candle]) -> List[Candle]:
        return sanitize_candles(
            candles,
            now=self.now,
            future_tolerance=self.settings.ohlc.future_tolerance_seconds,
        )

    def candle_steps(self) -> List[Step[List[Candle]]]:
        steps: List[Step[List[Candle]]] = []
        if self.pool_address is None:
            return steps
        for provider_id in CANDLE_PROVIDERS:
            client = self._client(provider_id)
            if client is None or not client.candle_capable:
                continue
            network = to_provider_network(self.chain, provider_id)
            if network is None:
                LOGGER.debug("[ohlc] %s does not serve chain %s", provider_id, self.chain)
                continue
            for timeframe in fallback_order(self.tf, provider_id):
                steps.append(
                    Step(
                        source=provider_id,
                        detail=timeframe,
                        run=self._candle_runner(client, network, timeframe),
                    )
                )
        return steps

    def _candle_runner(self, client: ProviderClient, network: str, timeframe: str):
        async def run() -> List[Candle]:
            raw = await client.fetch_candles(
                network, self.pool_address or "", timeframe, notes=self.record.notes
            )
            return self._sanitize(raw)

        return run

    def synthesis_steps(self) -> List[Step[List[Candle]]]:
        steps: List[Step[List[Candle]]] = []
        width = interval_to_seconds(self.tf) or 60
        limit = self.settings.ohlc.synthesis_trade_limit
        for provider_id in SYNTHESIS_PROVIDERS:
            client = self._client(provider_id)
            if client is None or not client.trade_capable:
                continue
            network = to_provider_network(self.chain, provider_id)
            if network is None:
                continue
            # DexScreener addresses trades by pair id; the others by pool address.
            target = self.pair_id if provider_id == "ds" else self.pool_address
            if target is None:
                continue
            steps.append(
                Step(
                    source=f"{provider_id}-trades",
                    detail=self.tf,
                    run=self._synthesis_runner(client, network, target, limit, width),
                )
            )
        return steps

    def _synthesis_runner(
        self, client: ProviderClient, network: str, target: str, limit: int, width: int
    ):
        async def run() -> List[Candle]:
            trades = await client.fetch_trades(network, target, limit, notes=self.record.notes)
            return self._sanitize(build_candles(trades, width))

        return run

    # --------------------------------------------------------------- stages
    async def try_candle_providers(self) -> Optional[EndpointResult]:
        step, candles = await run_steps(self.candle_steps(), self.record)
        if step is not None and candles:
            self.candles = candles
            self.record.provider = step.source
            self.record.effective_tf = step.detail
        return None

    async def try_trade_synthesis(self) -> Optional[EndpointResult]:
        if self.candles:
            return None
        step, candles = await run_steps(self.synthesis_steps(), self.record)
        if step is not None and candles:
            self.candles = candles
            self.record.provider = "synthetic"
            self.record.effective_tf = self.tf
            self.record.notes["x-synthesized-from"] = "trades"
        return None

    async def respond(self) -> EndpointResult:
        self.record.items = len(self.candles)
        effective_tf = self.record.effective_tf or self.tf
        self.record.effective_tf = effective_tf
        body = {
            "pairId": self.pair_id,
            "tf": self.tf,
            "candles": [candle.as_dict() for candle in self.candles],
            "provider": self.record.provider,
            "effectiveTf": effective_tf,
        }
        return self.reply(200, body)


async def fetch_ohlc(
    params: Mapping[str, Optional[str]],
    providers: ProviderSet,
    settings: Settings,
    *,
    now: Optional[int] = None,
) -> EndpointResult:
    """Serve one ``/ohlc`` request."""

    return await OHLCPipeline(params, providers, settings, now=now).run()
