from __future__ import annotations

import asyncio

import httpx

from tokenfeed.client import TokenFeedClient
from tokenfeed.services import ResponseCache, TimeframeMemory

from conftest import POOL, make_candles


class FakeApi:
    """Serves canned aggregator responses and counts requests per path."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        if request.url.path == "/ohlc":
            if params.get("tf") != "1m":
                return httpx.Response(400, json={"error": "invalid_request", "provider": "none"})
            candles = [candle.as_dict() for candle in make_candles(7_200, 60)]
            body = {"pairId": params["pairId"], "tf": "1m", "candles": candles, "provider": "gt", "effectiveTf": "1m"}
            headers = {"x-provider": "gt", "x-fallbacks-tried": "gt", "x-effective-tf": "1m", "x-items": "60"}
            return httpx.Response(200, json=body, headers=headers)
        if request.url.path == "/trades":
            forced = params.get("provider", "ds")
            body = {"pairId": params["pairId"], "trades": [], "provider": forced}
            return httpx.Response(200, json=body, headers={"x-provider": forced})
        if request.url.path == "/token":
            return httpx.Response(200, json={"info": {}, "kpis": {"priceUsd": 1.0}, "pools": [], "provider": "cg"})
        return httpx.Response(404, json={"detail": "Not Found"})

    def factory(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def make_client(api: FakeApi, tmp_path) -> TokenFeedClient:
    return TokenFeedClient(
        "http://feed.test/",
        cache=ResponseCache(ttl_seconds=30),
        tf_memory=TimeframeMemory(tmp_path / "tf.json"),
        client_factory=api.factory,
    )


def test_ohlc_is_cached_and_rolled_up(tmp_path) -> None:
    api = FakeApi()
    client = make_client(api, tmp_path)

    async def scenario():
        minute = await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="1m")
        again = await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="1m")
        hourly = await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="1h")
        return minute, again, hourly

    minute, again, hourly = asyncio.run(scenario())

    assert len(api.requests) == 1
    assert minute.ok
    assert minute.meta.provider == "gt"
    assert minute.meta.items == "60"
    assert again is minute
    assert hourly.data["tf"] == "1h"
    assert len(hourly.data["candles"]) == 1
    assert hourly.data["candles"][0]["timestamp"] == 7_200
    assert hourly.meta.rolled_up_from == "1m"
    assert client.preferred_timeframe("p1", "gt") == "1m"


def test_errors_are_not_cached(tmp_path) -> None:
    api = FakeApi()
    client = make_client(api, tmp_path)

    async def scenario():
        first = await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="4h")
        second = await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="4h")
        return first, second

    first, second = asyncio.run(scenario())

    assert not first.ok
    assert first.status_code == 400
    assert not second.ok
    assert len(api.requests) == 2
    assert client.preferred_timeframe("p1", "gt", default="5m") == "5m"


def test_token_request_passes_query(tmp_path) -> None:
    api = FakeApi()
    client = make_client(api, tmp_path)

    result = asyncio.run(client.token("ethereum", POOL))

    assert result.ok
    assert result.data["kpis"]["priceUsd"] == 1.0
    request = api.requests[0]
    assert request.url.host == "feed.test"
    assert request.url.params["chain"] == "ethereum"
    assert request.url.params["address"] == POOL


def test_transport_errors_become_results(tmp_path) -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = TokenFeedClient(
        "http://feed.test",
        tf_memory=TimeframeMemory(tmp_path / "tf.json"),
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(broken)),
    )

    result = asyncio.run(client.pairs("ethereum", POOL))

    assert not result.ok
    assert result.status_code == 0
    assert result.data["error"] == "upstream_error"


def test_forced_provider_is_part_of_the_cache_key(tmp_path) -> None:
    api = FakeApi()
    client = make_client(api, tmp_path)

    async def scenario():
        first = await client.trades(pair_id="p1", pool_address=POOL, chain="ethereum", provider="gt")
        second = await client.trades(pair_id="p1", pool_address=POOL, chain="ethereum", provider="ds")
        repeat = await client.trades(pair_id="p1", pool_address=POOL, chain="ethereum", provider="gt")
        return first, second, repeat

    first, second, repeat = asyncio.run(scenario())

    assert len(api.requests) == 2
    assert [request.url.params["provider"] for request in api.requests] == ["gt", "ds"]
    assert second.data["provider"] == "ds"
    assert repeat is first


def test_rollup_does_not_cross_forced_providers(tmp_path) -> None:
    api = FakeApi()
    client = make_client(api, tmp_path)

    async def scenario():
        await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="1m", provider="gt")
        return await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="1h", provider="cg")

    hourly = asyncio.run(scenario())

    assert len(api.requests) == 2
    assert not hourly.ok


def test_rolled_up_result_expires_with_its_source(tmp_path) -> None:
    class FakeClock:
        now = 1_000.0

        def __call__(self) -> float:
            return self.now

    clock = FakeClock()
    api = FakeApi()
    client = TokenFeedClient(
        "http://feed.test",
        cache=ResponseCache(ttl_seconds=30, clock=clock),
        tf_memory=TimeframeMemory(tmp_path / "tf.json"),
        client_factory=api.factory,
    )

    async def hourly():
        return await client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="1h")

    asyncio.run(client.ohlc(pair_id="p1", pool_address=POOL, chain="ethereum", tf="1m"))
    clock.now += 29
    assert asyncio.run(hourly()).meta.rolled_up_from == "1m"
    clock.now += 5
    late = asyncio.run(hourly())

    assert late.meta.rolled_up_from is None
    assert not late.ok
    assert len(api.requests) == 2
