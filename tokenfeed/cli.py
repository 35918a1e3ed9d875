"""Command line interface for the token market-data aggregator."""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import Settings, get_settings, load_settings
from .services import EndpointResult, ProviderSet, fetch_ohlc, fetch_pairs, fetch_token, fetch_trades
from .utils.logging import configure_logging, get_logger

configure_logging()
LOGGER = get_logger(__name__)

Handler = Callable[..., Awaitable[EndpointResult]]


def _settings(config: Optional[Path]) -> Settings:
    return load_settings(config) if config is not None else get_settings()


def cmd_serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    LOGGER.info("Serving API on %s:%s", host, port)
    uvicorn.run("tokenfeed.api.app:create_app", factory=True, host=host, port=port, reload=reload)


def cmd_query(handler: Handler, params: Dict[str, Any], config: Optional[Path] = None) -> int:
    settings = _settings(config)
    providers = ProviderSet.from_settings(settings)
    cleaned = {key: None if value is None else str(value) for key, value in params.items()}
    result = asyncio.run(handler(cleaned, providers, settings))
    LOGGER.info(
        "status=%s provider=%s tried=%s",
        result.status_code,
        result.headers.get("x-provider"),
        result.headers.get("x-fallbacks-tried"),
    )
    print(json.dumps(result.body, indent=2))
    return 0 if result.status_code == 200 and "error" not in result.body else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Token market data CLI")
    parser.add_argument("--config", type=Path, default=None)
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    ohlc = sub.add_parser("ohlc")
    ohlc.add_argument("--pair-id", dest="pair_id", required=True)
    ohlc.add_argument("--chain", required=True)
    ohlc.add_argument("--tf", default="1m")
    ohlc.add_argument("--pool-address", dest="pool_address", default=None)
    ohlc.add_argument("--provider", default=None)

    trades = sub.add_parser("trades")
    trades.add_argument("--pair-id", dest="pair_id", required=True)
    trades.add_argument("--chain", required=True)
    trades.add_argument("--pool-address", dest="pool_address", default=None)
    trades.add_argument("--limit", type=int, default=None)
    trades.add_argument("--window", type=float, default=None)
    trades.add_argument("--provider", default=None)

    pairs = sub.add_parser("pairs")
    pairs.add_argument("--chain", required=True)
    pairs.add_argument("--address", required=True)
    pairs.add_argument("--provider", default=None)

    token = sub.add_parser("token")
    token.add_argument("--chain", required=True)
    token.add_argument("--address", required=True)

    args = parser.parse_args(argv)

    if args.command == "serve":
        cmd_serve(args.host, args.port, args.reload)
        return 0
    if args.command == "ohlc":
        params = {
            "pairId": args.pair_id,
            "chain": args.chain,
            "tf": args.tf,
            "poolAddress": args.pool_address,
            "provider": args.provider,
        }
        return cmd_query(fetch_ohlc, params, args.config)
    if args.command == "trades":
        params = {
            "pairId": args.pair_id,
            "chain": args.chain,
            "poolAddress": args.pool_address,
            "limit": args.limit,
            "window": args.window,
            "provider": args.provider,
        }
        return cmd_query(fetch_trades, params, args.config)
    if args.command == "pairs":
        params = {"chain": args.chain, "address": args.address, "provider": args.provider}
        return cmd_query(fetch_pairs, params, args.config)
    if args.command == "token":
        return cmd_query(fetch_token, {"chain": args.chain, "address": args.address}, args.config)
    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
