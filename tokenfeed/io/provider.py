"""Common plumbing for upstream market-data provider clients."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from ..config import ProviderSettings
from ..utils.logging import get_logger
from .http import ClientFactory, HTTPResult, get_json
from .schema import Candle, Trade

LOGGER = get_logger(__name__)

Notes = MutableMapping[str, str]


class ProviderClient:
    """Base class holding connection settings for one upstream API.

    Subclasses translate provider JSON into :mod:`tokenfeed.io.schema` types.
    Capability methods return an empty list on any kind of failure; callers
    treat "failed" and "no data" the same way.
    """

    provider_id: str = ""
    candle_capable: bool = False
    trade_capable: bool = False

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.base_url = settings.base_url.rstrip("/")
        self.api_key = settings.api_key.strip()
        self.timeout = float(settings.timeout)
        self.enabled = settings.enabled
        self._client_factory = client_factory

    @property
    def available(self) -> bool:
        return self.enabled and bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        return {"accept": "application/json"}

    async def _get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        notes: Optional[Notes] = None,
    ) -> HTTPResult:
        url = f"{self.base_url}/{path.lstrip('/')}"
        result = await get_json(
            url,
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
            client_factory=self._client_factory,
        )
        if result.auth_failed and notes is not None:
            notes[f"x-{self.provider_id}-auth"] = "fail"
        LOGGER.debug("%s GET %s -> %s", self.provider_id, url, result.status)
        return result

    async def fetch_candles(
        self, network: str, pool_address: str, timeframe: str, *, notes: Optional[Notes] = None
    ) -> List[Candle]:
        return []

    async def fetch_trades(
        self, network: str, pool_address: str, limit: int, *, notes: Optional[Notes] = None
    ) -> List[Trade]:
        return []
