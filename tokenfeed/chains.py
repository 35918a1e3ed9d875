"""Chain slug <-> provider network identifier tables.

Providers disagree on how to name the same chain (``"eth"`` vs ``"ethereum"``
vs ``1``), so each one gets its own table. Lookups never raise: an unknown
chain simply maps to ``None``, meaning "this provider cannot serve it".
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Optional

# Chains every endpoint accepts. Anything else gets the unsupported_network marker.
SUPPORTED_CHAINS: FrozenSet[str] = frozenset(
    {"ethereum", "bsc", "polygon", "optimism", "arbitrum", "avalanche", "base"}
)

CHAIN_TO_GT_NETWORK: Dict[str, str] = {
    "ethereum": "eth",
    "arbitrum": "arbitrum",
    "base": "base",
    "bsc": "bsc",
    "polygon": "polygon_pos",
    "avalanche": "avax",
    "optimism": "optimism",
    "fantom": "ftm",
}

# CoinGecko's on-chain API reuses GeckoTerminal network ids.
CHAIN_TO_CG_NETWORK: Dict[str, str] = dict(CHAIN_TO_GT_NETWORK)

CHAIN_TO_DS_CHAIN: Dict[str, str] = {
    "ethereum": "ethereum",
    "arbitrum": "arbitrum",
    "base": "base",
    "bsc": "bsc",
    "polygon": "polygon",
    "avalanche": "avalanche",
    "optimism": "optimism",
    "fantom": "fantom",
}

CHAIN_TO_CHAIN_ID: Dict[str, str] = {
    "ethereum": "1",
    "bsc": "56",
    "polygon": "137",
    "optimism": "10",
    "arbitrum": "42161",
    "avalanche": "43114",
    "base": "8453",
    "fantom": "250",
}

PROVIDER_NETWORKS: Dict[str, Dict[str, str]] = {
    "gt": CHAIN_TO_GT_NETWORK,
    "cg": CHAIN_TO_CG_NETWORK,
    "ds": CHAIN_TO_DS_CHAIN,
    "chainid": CHAIN_TO_CHAIN_ID,
}

# Pools on these DEX deployments have GeckoTerminal candle coverage.
GT_DEX_ALLOW: FrozenSet[str] = frozenset(
    {
        "uniswap_v2",
        "uniswap_v3",
        "sushiswap",
        "pancakeswap_v2",
        "pancakeswap_v3",
        "quickswap",
    }
)


def _normalise(chain: object) -> str:
    return str(chain or "").strip().lower()


def to_provider_network(chain: object, provider: str) -> Optional[str]:
    table = PROVIDER_NETWORKS.get(provider)
    if table is None:
        return None
    return table.get(_normalise(chain))


def is_chain_supported(chain: object) -> bool:
    return _normalise(chain) in SUPPORTED_CHAINS


def chain_from_provider(value: object, provider: str = "chainid") -> str:
    """Reverse lookup of a provider network id (or numeric chain id) to a slug.

    Values that are already slugs pass through; unknown values are returned
    as-is so the caller still has something to display.
    """

    key = _normalise(value)
    if not key:
        return "unknown"
    if key in PROVIDER_NETWORKS["ds"]:
        return key
    for table_name in (provider, "chainid"):
        table = PROVIDER_NETWORKS.get(table_name, {})
        for slug, network in table.items():
            if network == key:
                return slug
    return key


def is_gt_supported(dex: Optional[str], version: Optional[str] = None) -> bool:
    if not dex:
        return False
    key = dex.lower()
    if version:
        key = f"{key}_{version.lower()}"
    return key in GT_DEX_ALLOW
