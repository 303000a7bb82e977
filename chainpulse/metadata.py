"""Static lookup tables: sectors, ecosystems, DefiLlama slugs, stream keys.

Defaults live here; ``config.yaml`` may extend or override any entry (see
:func:`StaticTables.merged`).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

DEFAULT_CATEGORY = "Others"

SECTORS: dict[str, str] = {
    "btc": "Layer 1",
    "eth": "Layer 1",
    "usdt": "Stablecoin",
    "bnb": "Layer 1",
    "sol": "Layer 1",
    "usdc": "Stablecoin",
    "xrp": "Layer 1",
    "steth": "Liquid Staking",
    "doge": "Memecoin",
    "ton": "Layer 1",
    "ada": "Layer 1",
    "shib": "Memecoin",
    "avax": "Layer 1",
    "trx": "Layer 1",
    "wbtc": "Wrapped",
    "dot": "Layer 1",
    "bch": "Layer 1",
    "link": "Infrastructure",
    "near": "Layer 1",
    "matic": "Layer 2",
    "ltc": "Layer 1",
    "dai": "Stablecoin",
    "uni": "DeFi",
    "icp": "Layer 1",
    "leo": "Exchange",
    "etc": "Layer 1",
    "apt": "Layer 1",
    "rndr": "AI",
    "fet": "AI",
    "pepe": "Memecoin",
    "arb": "Layer 2",
    "op": "Layer 2",
    "mkr": "DeFi",
    "aave": "DeFi",
    "ldo": "Liquid Staking",
    "grt": "Infrastructure",
    "atom": "Layer 1",
    "fil": "Infrastructure",
    "imx": "Gaming",
    "vet": "Layer 1",
    "hbar": "Layer 1",
    "ftm": "Layer 1",
    "theta": "Infrastructure",
    "rune": "DeFi",
    "ar": "Infrastructure",
    "mana": "Gaming",
    "sand": "Gaming",
    "axs": "Gaming",
    "gala": "Gaming",
    "ape": "Gaming",
    "chz": "Gaming",
    "crv": "DeFi",
    "snx": "DeFi",
    "cake": "DeFi",
    "1inch": "DeFi",
    "comp": "DeFi",
    "dydx": "DeFi",
    "sushi": "DeFi",
    "yfi": "DeFi",
    "inj": "DeFi",
    "agix": "AI",
    "ocean": "AI",
    "akt": "AI",
    "wld": "AI",
    "tao": "AI",
    "bonk": "Memecoin",
    "wif": "Memecoin",
    "floki": "Memecoin",
}

ECOSYSTEMS: dict[str, tuple[str, ...]] = {
    "ethereum": (
        "eth", "steth", "uni", "link", "aave", "mkr", "ldo", "grt", "shib",
        "pepe", "rndr", "fet", "imx", "mana", "sand", "axs", "gala", "ape",
        "chz", "crv", "snx", "1inch", "comp", "dydx", "sushi", "yfi", "agix",
        "ocean", "wld",
    ),
    "solana": ("sol", "bonk", "wif", "rndr", "pyth", "jup", "jto"),
    "bnb chain": ("bnb", "cake", "floki", "twt", "xvs"),
}

DEFILLAMA_SLUGS: dict[str, str] = {
    # protocols
    "uni": "uniswap",
    "aave": "aave",
    "mkr": "makerdao",
    "ldo": "lido",
    "crv": "curve-dex",
    "snx": "synthetix",
    "cake": "pancakeswap",
    "1inch": "1inch-network",
    "comp": "compound-finance",
    "dydx": "dydx",
    "sushi": "sushiswap",
    "yfi": "yearn-finance",
    "inj": "injective",
    "rune": "thorchain",
    "gmx": "gmx",
    "jup": "jupiter-aggregator",
    # chains
    "eth": "ethereum",
    "sol": "solana",
    "arb": "arbitrum",
    "op": "optimism",
    "matic": "polygon",
    "bnb": "bsc",
    "avax": "avalanche",
    "trx": "tron",
}

# CoinCap stream ids -> canonical symbol
STREAM_KEYS: dict[str, str] = {
    "bitcoin": "btc",
    "ethereum": "eth",
    "solana": "sol",
    "binance-coin": "bnb",
    "xrp": "xrp",
    "cardano": "ada",
    "avalanche": "avax",
    "dogecoin": "doge",
    "polkadot": "dot",
    "tron": "trx",
    "chainlink": "link",
    "polygon": "matic",
    "shiba-inu": "shib",
    "litecoin": "ltc",
    "bitcoin-cash": "bch",
    "uniswap": "uni",
    "stellar": "xlm",
    "cosmos": "atom",
    "near-protocol": "near",
    "internet-computer": "icp",
}


@dataclass(frozen=True)
class StaticTables:
    """Read-only lookup tables consulted by normalizers and the reconciler."""

    sectors: Mapping[str, str] = field(default_factory=lambda: dict(SECTORS))
    ecosystems: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(ECOSYSTEMS)
    )
    defillama_slugs: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFILLAMA_SLUGS)
    )
    stream_keys: Mapping[str, str] = field(default_factory=lambda: dict(STREAM_KEYS))

    @classmethod
    def merged(
        cls,
        sectors: Mapping[str, str] | None = None,
        ecosystems: Mapping[str, tuple[str, ...]] | None = None,
        defillama_slugs: Mapping[str, str] | None = None,
        stream_keys: Mapping[str, str] | None = None,
    ) -> StaticTables:
        """Defaults overlaid with the given overrides (keys lowercased)."""

        def _lower(mapping: Mapping[str, str] | None) -> dict[str, str]:
            return {k.lower(): v for k, v in (mapping or {}).items()}

        eco = dict(ECOSYSTEMS)
        for name, members in (ecosystems or {}).items():
            eco[name.lower()] = tuple(m.lower() for m in members)

        return cls(
            sectors={**SECTORS, **_lower(sectors)},
            ecosystems=eco,
            defillama_slugs={**DEFILLAMA_SLUGS, **_lower(defillama_slugs)},
            stream_keys={
                **STREAM_KEYS,
                **{k: v.lower() for k, v in _lower(stream_keys).items()},
            },
        )

    def category_for(self, symbol: str) -> str:
        return self.sectors.get((symbol or "").lower(), DEFAULT_CATEGORY)

    def ecosystems_for(self, symbol: str) -> frozenset[str]:
        symbol = (symbol or "").lower()
        return frozenset(
            eco for eco, members in self.ecosystems.items() if symbol in members
        )

    def slug_for(self, symbol: str) -> str | None:
        return self.defillama_slugs.get((symbol or "").lower())

    def symbol_for_stream_key(self, key: str) -> str | None:
        return self.stream_keys.get((key or "").lower())

    def stream_key_for(self, symbol: str) -> str | None:
        symbol = (symbol or "").lower()
        for key, mapped in self.stream_keys.items():
            if mapped == symbol:
                return key
        return None
