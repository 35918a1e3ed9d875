"""Provider clients and the provider-neutral market-data schema."""

from .schema import Candle, PoolSummary, TokenMeta, Trade
from .trade_candles import CandleState, build_candles

__all__ = ["Candle", "CandleState", "PoolSummary", "TokenMeta", "Trade", "build_candles"]
