"""Best-effort auxiliary data sources."""
from .binance import BinanceFuturesClient
from .defillama import DefiLlamaClient
from .etherscan import EtherscanGasClient
from .sentiment import SentimentClient

__all__ = [
    "BinanceFuturesClient",
    "DefiLlamaClient",
    "EtherscanGasClient",
    "SentimentClient",
]
