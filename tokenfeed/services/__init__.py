"""Service layer exports for the aggregator endpoints."""

from .cache import ResponseCache, TimeframeMemory, cache_key
from .ohlc import OHLCPipeline, fetch_ohlc, sanitize_candles
from .pairs import PairsPipeline, backfill_pools, fetch_pairs, sort_pools
from .pipeline import (
    AttemptRecord,
    EndpointResult,
    InvalidRequest,
    Pipeline,
    ProviderSet,
    Step,
    error_body,
    run_steps,
)
from .token import TokenPipeline, fetch_token
from .trades import TradesPipeline, fetch_trades, select_trades

__all__ = [
    "AttemptRecord",
    "EndpointResult",
    "InvalidRequest",
    "OHLCPipeline",
    "PairsPipeline",
    "Pipeline",
    "ProviderSet",
    "ResponseCache",
    "Step",
    "TimeframeMemory",
    "TokenPipeline",
    "TradesPipeline",
    "backfill_pools",
    "cache_key",
    "error_body",
    "fetch_ohlc",
    "fetch_pairs",
    "fetch_token",
    "fetch_trades",
    "run_steps",
    "sanitize_candles",
    "select_trades",
    "sort_pools",
]
