from __future__ import annotations

import pytest

from tokenfeed.config import DEFAULT_CONFIG_PATH, load_settings

ENV_KEYS = ("GT_API_BASE", "COINGECKO_API_BASE", "COINGECKO_API_KEY", "DS_API_BASE", "TOKENFEED_CONFIG")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_bundled_settings_load() -> None:
    settings = load_settings(DEFAULT_CONFIG_PATH)

    assert settings.providers.geckoterminal.base_url.startswith("https://")
    assert settings.providers.dexscreener.timeout == 3.0
    assert settings.trades.max_limit == 1000
    assert settings.http.cache_control == "public, max-age=30, stale-while-revalidate=60"


def test_yaml_values_and_env_overrides(tmp_path, monkeypatch) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "providers:\n"
        "  coingecko:\n"
        "    base_url: https://cg.example/api/v3\n"
        "    api_key: from-yaml\n"
        "trades:\n"
        "  default_limit: 50\n"
        "http:\n"
        "  max_age: 5\n"
    )
    monkeypatch.setenv("COINGECKO_API_KEY", "from-env")
    monkeypatch.setenv("DS_API_BASE", "https://ds.example")

    settings = load_settings(path)

    assert settings.providers.coingecko.api_key == "from-env"
    assert settings.providers.coingecko.base_url == "https://cg.example/api/v3"
    assert settings.providers.dexscreener.base_url == "https://ds.example"
    assert settings.trades.default_limit == 50
    assert settings.http.cache_control == "public, max-age=5, stale-while-revalidate=60"


def test_config_path_from_environment(tmp_path, monkeypatch) -> None:
    path = tmp_path / "alt.yaml"
    path.write_text("cache:\n  ttl_seconds: 12\n")
    monkeypatch.setenv("TOKENFEED_CONFIG", str(path))

    assert load_settings().cache.ttl_seconds == 12


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.yaml")
