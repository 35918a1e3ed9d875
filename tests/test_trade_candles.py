from __future__ import annotations

import math

from tokenfeed.io import Trade, build_candles


def make_trade(ts: int, price: float, amount: float | None = 1.0, side: str = "buy") -> Trade:
    return Trade(timestamp=ts, side=side, price=price, amount_base=amount)


def test_empty_input_yields_no_candles() -> None:
    assert build_candles([], 60) == []


def test_single_trade_is_flat_candle() -> None:
    candles = build_candles([make_trade(100, 2.5, 4.0)], 60)

    assert len(candles) == 1
    candle = candles[0]
    assert candle.timestamp == 60
    assert (candle.open, candle.high, candle.low, candle.close) == (2.5, 2.5, 2.5, 2.5)
    assert candle.volume == 4.0


def test_two_trades_in_one_bucket() -> None:
    candles = build_candles([make_trade(100, 10.0, 1.0), make_trade(110, 12.0, 2.0)], 60)

    assert len(candles) == 1
    candle = candles[0]
    assert candle.timestamp == 60
    assert candle.open == 10.0
    assert candle.close == 12.0
    assert candle.high == 12.0
    assert candle.low == 10.0
    assert candle.volume == 3.0


def test_trades_are_applied_in_time_order() -> None:
    trades = [make_trade(150, 3.0), make_trade(130, 1.0), make_trade(140, 2.0)]

    candle = build_candles(trades, 60)[0]

    assert candle.open == 1.0
    assert candle.close == 3.0


def test_buckets_sorted_and_invariants_hold() -> None:
    trades = [
        make_trade(3_650, 5.0, 1.0),
        make_trade(10, 4.0, 2.0, side="sell"),
        make_trade(65, 6.0, None),
        make_trade(70, 3.5, 0.5),
        make_trade(3_601, 4.2, 1.5),
    ]

    candles = build_candles(trades, 60)

    assert [c.timestamp for c in candles] == [0, 60, 3_600]
    for candle in candles:
        assert candle.timestamp % 60 == 0
        assert candle.low <= min(candle.open, candle.close)
        assert candle.high >= max(candle.open, candle.close)
        assert candle.volume >= 0
    # trade without a base amount moves price but adds no volume
    assert candles[1].volume == 0.5
    assert candles[1].high == 6.0


def test_unusable_trades_are_skipped() -> None:
    trades = [
        make_trade(60, math.nan),
        make_trade(60, -1.0),
        make_trade(60, 2.0, math.inf),
    ]

    candles = build_candles(trades, 60)

    assert len(candles) == 1
    assert candles[0].open == 2.0
    assert candles[0].volume == 0.0


def test_non_positive_width_returns_empty() -> None:
    trades = [make_trade(60, 1.0)]

    assert build_candles(trades, 0) == []
    assert build_candles(trades, -60) == []


def test_rebuilding_is_deterministic() -> None:
    trades = [make_trade(ts, 1.0 + ts / 1000, 0.1) for ts in range(0, 600, 7)]

    assert build_candles(trades, 300) == build_candles(list(reversed(trades)), 300)
