"""FastAPI app that exposes the aggregated market-data endpoints."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..services import (
    EndpointResult,
    ProviderSet,
    error_body,
    fetch_ohlc,
    fetch_pairs,
    fetch_token,
    fetch_trades,
)
from ..utils.logging import get_logger
from .dto import ApiErrorResponse, OHLCResponse, PairsResponse, TokenResponse, TradesResponse

LOGGER = get_logger(__name__)

Handler = Callable[..., Awaitable[EndpointResult]]


def _to_response(result: EndpointResult) -> JSONResponse:
    headers = {key: value for key, value in result.headers.items() if key.lower() != "content-type"}
    return JSONResponse(result.body, status_code=result.status_code, headers=headers)


def _failure(settings: Settings, status_code: int, error: str) -> JSONResponse:
    headers = {
        "Cache-Control": settings.http.cache_control,
        "x-provider": "none",
        "x-fallbacks-tried": "",
        "x-items": "0",
    }
    return JSONResponse(error_body(error), status_code=status_code, headers=headers)


def create_app(
    settings: Optional[Settings] = None,
    providers: Optional[ProviderSet] = None,
) -> FastAPI:
    settings = settings or get_settings()
    providers = providers or ProviderSet.from_settings(settings)

    app = FastAPI(title="Token market data API")
    app.state.settings = settings
    app.state.providers = providers

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        LOGGER.debug("Rejected %s: %s", request.url.path, exc)
        return _failure(settings, 400, "invalid_request")

    async def _serve(name: str, handler: Handler, params: Dict[str, Any], **kwargs: Any) -> JSONResponse:
        try:
            result = await handler(params, providers, settings, **kwargs)
        except Exception:
            LOGGER.exception("Unhandled error while serving /%s", name)
            return _failure(settings, 500, "internal_error")
        return _to_response(result)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get(
        "/ohlc",
        response_model=OHLCResponse,
        responses={400: {"model": ApiErrorResponse}, 500: {"model": ApiErrorResponse}},
    )
    async def ohlc(
        pairId: Optional[str] = Query(None, description="Provider pair identifier"),
        tf: Optional[str] = Query(None, description="Candle timeframe (1m..1d)"),
        chain: Optional[str] = Query(None, description="Canonical chain slug"),
        poolAddress: Optional[str] = Query(None, description="Pool contract address"),
        provider: Optional[str] = Query(None, description="Restrict to one provider (gt, cg, ds)"),
        gtSupported: Optional[str] = Query(None, description="Whether GeckoTerminal indexes the pool"),
    ) -> JSONResponse:
        params = {
            "pairId": pairId,
            "tf": tf,
            "chain": chain,
            "poolAddress": poolAddress,
            "provider": provider,
            "gtSupported": gtSupported,
        }
        return await _serve("ohlc", fetch_ohlc, params)

    @app.get(
        "/trades",
        response_model=TradesResponse,
        responses={400: {"model": ApiErrorResponse}, 500: {"model": ApiErrorResponse}},
    )
    async def trades(
        pairId: Optional[str] = Query(None, description="Provider pair identifier"),
        chain: Optional[str] = Query(None, description="Canonical chain slug"),
        poolAddress: Optional[str] = Query(None, description="Pool contract address"),
        limit: Optional[str] = Query(None, description="Maximum number of trades"),
        window: Optional[str] = Query(None, description="Only trades from the last N hours"),
        provider: Optional[str] = Query(None, description="Restrict to one provider (ds, gt, cg)"),
    ) -> JSONResponse:
        params = {
            "pairId": pairId,
            "chain": chain,
            "poolAddress": poolAddress,
            "limit": limit,
            "window": window,
            "provider": provider,
        }
        return await _serve("trades", fetch_trades, params)

    @app.get(
        "/pairs",
        response_model=PairsResponse,
        responses={400: {"model": ApiErrorResponse}, 500: {"model": ApiErrorResponse}},
    )
    async def pairs(
        chain: Optional[str] = Query(None, description="Canonical chain slug"),
        address: Optional[str] = Query(None, description="Token contract address"),
        provider: Optional[str] = Query(None, description="Restrict to one provider (ds, gt)"),
    ) -> JSONResponse:
        params = {"chain": chain, "address": address, "provider": provider}
        return await _serve("pairs", fetch_pairs, params)

    @app.get(
        "/token",
        response_model=TokenResponse,
        responses={400: {"model": ApiErrorResponse}, 500: {"model": ApiErrorResponse}},
    )
    async def token(
        chain: Optional[str] = Query(None, description="Canonical chain slug"),
        address: Optional[str] = Query(None, description="Token contract address"),
    ) -> JSONResponse:
        params = {"chain": chain, "address": address}
        return await _serve("token", fetch_token, params)

    return app
