"""Response envelopes for the FastAPI endpoints (used for OpenAPI docs)."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ApiErrorResponse(BaseModel):
    error: str
    provider: str = "none"


class CandleModel(BaseModel):
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = Field(None, ge=0)


class TradeModel(BaseModel):
    timestamp: int
    side: str = Field(..., pattern="^(buy|sell)$")
    price: float = Field(..., ge=0)
    amountBase: Optional[float] = None
    amountQuote: Optional[float] = None
    transactionHash: Optional[str] = None
    walletAddress: Optional[str] = None


class OHLCResponse(BaseModel):
    pairId: str
    tf: str
    candles: List[CandleModel]
    provider: str
    effectiveTf: Optional[str] = None


class TradesResponse(BaseModel):
    pairId: str
    trades: List[TradeModel]
    provider: str


class PairsResponse(BaseModel):
    token: Dict[str, Any]
    pools: List[Dict[str, Any]]
    provider: str


class TokenResponse(BaseModel):
    info: Dict[str, Any] = Field(default_factory=dict)
    kpis: Dict[str, Any] = Field(default_factory=dict)
    pools: List[Dict[str, Any]] = Field(default_factory=list)
    provider: str
