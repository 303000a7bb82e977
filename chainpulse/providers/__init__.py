"""Market data providers and the fallback chain."""
from .chain import ProviderChain
from .coincap import CoinCapProvider
from .coingecko import CoinGeckoProvider
from .cryptocompare import CryptoCompareProvider

__all__ = [
    "CoinCapProvider",
    "CoinGeckoProvider",
    "CryptoCompareProvider",
    "ProviderChain",
]
