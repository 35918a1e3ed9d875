"""Configuration loading for the token market-data aggregator."""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "settings.yaml"


class ProviderSettings(BaseModel):
    base_url: str = ""
    api_key: str = ""
    timeout: float = Field(5.0, gt=0.0)
    enabled: bool = True


class ProvidersSettings(BaseModel):
    geckoterminal: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(
            base_url="https://api.geckoterminal.com/api/v2", timeout=8.0
        )
    )
    coingecko: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(
            base_url="https://pro-api.coingecko.com/api/v3", timeout=8.0
        )
    )
    dexscreener: ProviderSettings = Field(
        default_factory=lambda: ProviderSettings(
            base_url="https://api.dexscreener.com/latest", timeout=3.0
        )
    )


class OHLCSettings(BaseModel):
    synthesis_trade_limit: int = Field(300, ge=1, le=1000)
    future_tolerance_seconds: int = Field(60, ge=0)


class TradesSettings(BaseModel):
    default_limit: int = Field(300, ge=1)
    max_limit: int = Field(1000, ge=1)


class CacheSettings(BaseModel):
    ttl_seconds: float = Field(30.0, gt=0.0)
    max_entries: int = Field(50, ge=1)


class HTTPSettings(BaseModel):
    max_age: int = Field(30, ge=0)
    stale_while_revalidate: int = Field(60, ge=0)

    @property
    def cache_control(self) -> str:
        return f"public, max-age={self.max_age}, stale-while-revalidate={self.stale_while_revalidate}"


class Settings(BaseModel):
    providers: ProvidersSettings = Field(default_factory=ProvidersSettings)
    ohlc: OHLCSettings = Field(default_factory=OHLCSettings)
    trades: TradesSettings = Field(default_factory=TradesSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _apply_env_overrides(settings: Settings) -> Settings:
    providers = settings.providers
    gt_base = os.getenv("GT_API_BASE")
    cg_base = os.getenv("COINGECKO_API_BASE")
    cg_key = os.getenv("COINGECKO_API_KEY")
    ds_base = os.getenv("DS_API_BASE")
    if gt_base:
        providers.geckoterminal.base_url = gt_base
    if cg_base:
        providers.coingecko.base_url = cg_base
    if cg_key:
        providers.coingecko.api_key = cg_key
    if ds_base:
        providers.dexscreener.base_url = ds_base
    return settings


def load_settings(path: Path | str | None = None) -> Settings:
    """Load settings from YAML and environment variables.

    An explicitly requested file must exist; when no path is given the
    bundled ``configs/settings.yaml`` is used if present, defaults otherwise.
    """
    load_dotenv()
    if path is None:
        env_path = os.getenv("TOKENFEED_CONFIG")
        if env_path:
            raw = _load_yaml(Path(env_path))
        elif DEFAULT_CONFIG_PATH.exists():
            raw = _load_yaml(DEFAULT_CONFIG_PATH)
        else:
            raw = {}
    else:
        raw = _load_yaml(Path(path))
    settings = Settings.model_validate(raw)
    return _apply_env_overrides(settings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
