"""Protocol interfaces for chainpulse."""
from .market_provider import MarketProvider
from .price_stream import PriceStream

__all__ = ["MarketProvider", "PriceStream"]
