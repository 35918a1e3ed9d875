from __future__ import annotations

import asyncio
import math

from tokenfeed.io.schema import Candle, Trade
from tokenfeed.services import fetch_ohlc, sanitize_candles

from conftest import NOW, POOL, StubProvider, make_candles

HOUR_START = (NOW // 3_600) * 3_600 - 3_600


def _params(**overrides):
    params = {"pairId": "pair-1", "tf": "1m", "chain": "ethereum", "poolAddress": POOL}
    params.update(overrides)
    return params


def _run(params, providers, settings):
    return asyncio.run(fetch_ohlc(params, providers, settings, now=NOW))


def test_first_provider_with_candles_wins(settings, make_providers) -> None:
    gt = StubProvider("gt", candles={"1m": make_candles(HOUR_START, 5)})
    cg = StubProvider("cg", candles={"1m": make_candles(HOUR_START, 5)})
    result = _run(_params(), make_providers(gt=gt, cg=cg), settings)

    assert result.status_code == 200
    assert result.body["provider"] == "gt"
    assert result.body["effectiveTf"] == "1m"
    assert len(result.body["candles"]) == 5
    assert result.headers["x-provider"] == "gt"
    assert result.headers["x-fallbacks-tried"] == "gt"
    assert result.headers["x-items"] == "5"
    assert result.headers["Cache-Control"] == "public, max-age=30, stale-while-revalidate=60"
    assert cg.calls == []
    assert gt.calls == [("candles", "eth", POOL, "1m")]


def test_timeframe_fallback_reports_effective_tf(settings, make_providers) -> None:
    gt = StubProvider("gt", candles={"15m": make_candles(HOUR_START, 4, width=900)})
    result = _run(_params(), make_providers(gt=gt), settings)

    assert result.body["provider"] == "gt"
    assert result.body["tf"] == "1m"
    assert result.body["effectiveTf"] == "15m"
    assert result.headers["x-effective-tf"] == "15m"
    assert result.headers["x-fallback-steps"] == "gt:1m,gt:5m,gt:15m"
    assert [call[3] for call in gt.calls_to("candles")] == ["1m", "5m", "15m"]


def test_synthesizes_candles_from_trades(settings, make_providers) -> None:
    trades = [
        Trade(timestamp=HOUR_START + 5, side="buy", price=1.0, amount_base=2.0),
        Trade(timestamp=HOUR_START + 30, side="sell", price=1.2, amount_base=1.0),
        Trade(timestamp=HOUR_START + 70, side="buy", price=0.9, amount_base=3.0),
    ]
    cg = StubProvider("cg", trades=trades)
    result = _run(_params(), make_providers(cg=cg), settings)

    assert result.status_code == 200
    assert result.body["provider"] == "synthetic"
    assert result.body["effectiveTf"] == "1m"
    assert result.headers["x-synthesized-from"] == "trades"
    assert result.headers["x-fallbacks-tried"] == "gt,cg,cg-trades"
    candles = result.body["candles"]
    assert [c["timestamp"] for c in candles] == [HOUR_START, HOUR_START + 60]
    assert candles[0] == {
        "timestamp": HOUR_START,
        "open": 1.0,
        "high": 1.2,
        "low": 1.0,
        "close": 1.2,
        "volume": 3.0,
    }


def test_same_price_trades_in_one_bucket_make_one_flat_candle(settings, make_providers) -> None:
    amounts = [1.0, 2.0, 3.0, 4.5]
    trades = [
        Trade(timestamp=HOUR_START + 10 * idx, side="buy", price=2.5, amount_base=amount)
        for idx, amount in enumerate(amounts)
    ]
    cg = StubProvider("cg", trades=trades)
    result = _run(_params(), make_providers(cg=cg), settings)

    assert result.body["provider"] == "synthetic"
    assert result.headers["x-items"] == "1"
    assert result.body["candles"] == [
        {"timestamp": HOUR_START, "open": 2.5, "high": 2.5, "low": 2.5, "close": 2.5, "volume": 10.5}
    ]

def test_exhaustion_returns_empty_series(settings, make_providers) -> None:
    providers = make_providers()
    result = _run(_params(), providers, settings)

    assert result.status_code == 200
    assert result.body == {
        "pairId": "pair-1",
        "tf": "1m",
        "candles": [],
        "provider": "none",
        "effectiveTf": "1m",
    }
    assert result.headers["x-provider"] == "none"
    assert result.headers["x-items"] == "0"
    assert result.headers["x-fallbacks-tried"] == "gt,cg,cg-trades,gt-trades,ds-trades"
    assert providers.ds.calls == [("trades", "ethereum", "pair-1", 300)]


def test_unsupported_chain_makes_no_upstream_calls(settings, make_providers) -> None:
    providers = make_providers()
    result = _run(_params(chain="solana"), providers, settings)

    assert result.status_code == 200
    assert result.body == {"error": "unsupported_network", "provider": "none"}
    assert providers.gt.calls == []
    assert providers.cg.calls == []
    assert providers.ds.calls == []


def test_missing_or_bad_parameters_are_rejected(settings, make_providers) -> None:
    providers = make_providers()

    for params in (
        _params(tf=None),
        _params(pairId="  "),
        _params(tf="2m"),
        _params(provider="binance"),
    ):
        result = _run(params, providers, settings)
        assert result.status_code == 400
        assert result.body == {"error": "invalid_request", "provider": "none"}
    assert providers.gt.calls == []


def test_invalid_pool_skips_pool_keyed_providers(settings, make_providers) -> None:
    providers = make_providers()
    result = _run(_params(poolAddress="not-a-pool"), providers, settings)

    assert result.headers["x-invalid-pool"] == "1"
    assert providers.gt.calls == []
    assert providers.cg.calls == []
    assert providers.ds.calls_to("trades")
    assert result.headers["x-fallbacks-tried"] == "ds-trades"


def test_forced_provider_limits_attempts(settings, make_providers) -> None:
    trades = [Trade(timestamp=HOUR_START, side="buy", price=2.0, amount_base=1.0)]
    ds = StubProvider("ds", trades=trades, candle_capable=False)
    providers = make_providers(ds=ds)
    result = _run(_params(provider="ds"), providers, settings)

    assert result.body["provider"] == "synthetic"
    assert result.headers["x-fallbacks-tried"] == "ds-trades"
    assert providers.gt.calls == []
    assert providers.cg.calls == []


def test_gt_unsupported_pool_skips_geckoterminal(settings, make_providers) -> None:
    cg = StubProvider("cg", candles={"1m": make_candles(HOUR_START, 3)})
    providers = make_providers(cg=cg)
    result = _run(_params(gtSupported="false"), providers, settings)

    assert result.body["provider"] == "cg"
    assert providers.gt.calls == []


def test_disabled_and_failing_providers_are_skipped(settings, make_providers) -> None:
    gt = StubProvider("gt", fail=True)
    cg = StubProvider("cg", available=False)
    ds = StubProvider("ds", candle_capable=False, trades=[Trade(timestamp=HOUR_START, side="buy", price=1.0)])
    result = _run(_params(), make_providers(gt=gt, cg=cg, ds=ds), settings)

    assert result.status_code == 200
    assert result.body["provider"] == "synthetic"
    assert "cg:disabled" in result.headers["x-fallbacks-tried"].split(",")
    assert cg.calls == []
    assert len(gt.calls_to("candles")) == 4


def test_sanitize_candles_repairs_series() -> None:
    candles = [
        Candle(timestamp=120, open=5.0, high=1.0, low=4.0, close=0.5, volume=-3.0),
        Candle(timestamp=60, open=1.0, high=2.0, low=0.5, close=1.5, volume=1.0),
        Candle(timestamp=60, open=1.1, high=2.1, low=0.6, close=1.6, volume=2.0),
        Candle(timestamp=180, open=math.nan, high=1.0, low=1.0, close=1.0),
        Candle(timestamp=10_000, open=1.0, high=1.0, low=1.0, close=1.0),
    ]

    cleaned = sanitize_candles(candles, now=1_000, future_tolerance=60)

    assert [c.timestamp for c in cleaned] == [60, 120]
    assert cleaned[0].open == 1.1
    repaired = cleaned[1]
    assert (repaired.low, repaired.high) == (1.0, 4.0)
    assert repaired.open == 4.0
    assert repaired.close == 1.0
    assert repaired.volume is None
