"""Bounded, non-raising JSON GET helper used by every provider client."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]


@dataclass(slots=True)
class HTTPResult:
    """Outcome of one upstream call. ``status`` is ``0`` for transport errors."""

    status: int
    payload: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300 and self.payload is not None

    @property
    def auth_failed(self) -> bool:
        return self.status in (401, 403)


async def get_json(
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = 5.0,
    client_factory: Optional[ClientFactory] = None,
) -> HTTPResult:
    """GET ``url`` and decode JSON.

    Never raises for upstream problems: non-2xx statuses, timeouts, transport
    errors, empty bodies and invalid JSON all come back as a result whose
    ``ok`` is false.
    """

    query: Dict[str, Any] = {key: value for key, value in (params or {}).items() if value is not None}
    factory = client_factory or (lambda: httpx.AsyncClient(timeout=timeout))
    try:
        async with factory() as client:
            response = await client.get(url, params=query, headers=dict(headers or {}), timeout=timeout)
    except httpx.TimeoutException:
        LOGGER.warning("Timed out after %.1fs fetching %s", timeout, url)
        return HTTPResult(status=0)
    except httpx.HTTPError as exc:
        LOGGER.warning("Request to %s failed: %s", url, exc)
        return HTTPResult(status=0)

    if not response.is_success:
        LOGGER.warning("Upstream %s answered %s", url, response.status_code)
        return HTTPResult(status=response.status_code)
    if not response.content:
        return HTTPResult(status=response.status_code)
    try:
        payload = response.json()
    except ValueError:
        LOGGER.warning("Invalid JSON from %s", url)
        return HTTPResult(status=response.status_code)
    return HTTPResult(status=response.status_code, payload=payload)
