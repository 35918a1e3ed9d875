"""Shared request pipeline: stage sequencing, provider fallback steps, diagnostics.

Each endpoint is a :class:`Pipeline` subclass listing its stages by name.
Stages run in order; the first one to return an :class:`EndpointResult`
ends the request. Provider attempts are expressed as an ordered list of
:class:`Step` objects so the fallback order is data rather than nested
``try``/``except`` blocks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
)

from ..chains import is_chain_supported
from ..config import Settings
from ..io.coingecko import CoinGeckoClient
from ..io.dexscreener import DexScreenerClient
from ..io.geckoterminal import GeckoTerminalClient
from ..io.http import ClientFactory
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


class InvalidRequest(ValueError):
    """A required query parameter is missing or malformed."""


def error_body(error: str) -> Dict[str, str]:
    return {"error": error, "provider": "none"}


@dataclass(slots=True)
class AttemptRecord:
    """Diagnostic trail for one request."""

    tried: List[str] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    provider: str = "none"
    effective_tf: Optional[str] = None
    items: int = 0
    notes: Dict[str, str] = field(default_factory=dict)

    def mark(self, source: str) -> None:
        if source not in self.tried:
            self.tried.append(source)

    def attempt(self, source: str, detail: Optional[str] = None) -> None:
        self.mark(source)
        self.steps.append(f"{source}:{detail}" if detail else source)

    def headers(self) -> Dict[str, str]:
        headers = {
            "x-provider": self.provider,
            "x-fallbacks-tried": ",".join(self.tried),
            "x-items": str(self.items),
        }
        if self.effective_tf:
            headers["x-effective-tf"] = self.effective_tf
        if self.steps:
            headers["x-fallback-steps"] = ",".join(self.steps)
        headers.update(self.notes)
        return headers


@dataclass(slots=True)
class Step(Generic[T]):
    """One provider attempt. ``source`` is what lands in ``x-fallbacks-tried``."""

    source: str
    run: Callable[[], Awaitable[T]]
    detail: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.source}:{self.detail}" if self.detail else self.source


@dataclass(slots=True)
class EndpointResult:
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)


async def attempt_step(step: Step[T], record: AttemptRecord) -> Optional[T]:
    """Run a single step, recording it and absorbing any provider fault."""

    record.attempt(step.source, step.detail)
    try:
        return await step.run()
    except Exception as exc:  # provider faults never escape the sequencer
        LOGGER.warning("Provider step %s failed: %s", step.name, exc)
        return None


async def run_steps(
    steps: Iterable[Step[T]], record: AttemptRecord
) -> Tuple[Optional[Step[T]], Optional[T]]:
    """Try ``steps`` in order; the first truthy result wins and short-circuits."""

    for step in steps:
        value = await attempt_step(step, record)
        if value:
            LOGGER.debug("Step %s satisfied the request", step.name)
            return step, value
    return None, None


@dataclass(slots=True)
class ProviderSet:
    """The upstream clients available to the endpoint pipelines."""

    gt: GeckoTerminalClient
    cg: CoinGeckoClient
    ds: DexScreenerClient

    @classmethod
    def from_settings(
        cls, settings: Settings, *, client_factory: Optional[ClientFactory] = None
    ) -> "ProviderSet":
        providers = settings.providers
        return cls(
            gt=GeckoTerminalClient(providers.geckoterminal, client_factory=client_factory),
            cg=CoinGeckoClient(providers.coingecko, client_factory=client_factory),
            ds=DexScreenerClient(providers.dexscreener, client_factory=client_factory),
        )

    def get(self, provider_id: str) -> Any:
        return {"gt": self.gt, "cg": self.cg, "ds": self.ds}.get(provider_id)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class Pipeline:
    """Base class for the per-endpoint state machines."""

    stages: Tuple[str, ...] = ()
    name: str = "pipeline"

    def __init__(
        self,
        params: Mapping[str, Optional[str]],
        providers: ProviderSet,
        settings: Settings,
    ) -> None:
        self.params = {key: _clean(value) for key, value in params.items()}
        self.providers = providers
        self.settings = settings
        self.record = AttemptRecord()
        self.chain: Optional[str] = None

    def param(self, key: str) -> Optional[str]:
        return self.params.get(key)

    def require(self, key: str) -> str:
        value = self.param(key)
        if value is None:
            raise InvalidRequest(f"missing parameter '{key}'")
        return value

    def reply(self, status_code: int, body: Dict[str, Any]) -> EndpointResult:
        headers = {
            "Content-Type": "application/json",
            "Cache-Control": self.settings.http.cache_control,
        }
        headers.update(self.record.headers())
        LOGGER.debug(
            "[%s] %s items=%s provider=%s tried=%s",
            self.name,
            status_code,
            self.record.items,
            self.record.provider,
            ",".join(self.record.tried),
        )
        return EndpointResult(status_code=status_code, body=body, headers=headers)

    async def validate(self) -> Optional[EndpointResult]:
        try:
            self.parse()
        except InvalidRequest as exc:
            LOGGER.debug("[%s] rejected request: %s", self.name, exc)
            return self.reply(400, error_body("invalid_request"))
        return None

    def parse(self) -> None:
        raise NotImplementedError

    async def check_chain_support(self) -> Optional[EndpointResult]:
        if not is_chain_supported(self.chain):
            return self.reply(200, error_body("unsupported_network"))
        return None

    async def run(self) -> EndpointResult:
        for stage_name in self.stages:
            stage = getattr(self, stage_name)
            result = await stage()
            if result is not None:
                return result
        raise RuntimeError(f"{type(self).__name__} finished without a response")
