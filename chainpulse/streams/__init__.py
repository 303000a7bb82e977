"""Push price streams."""
from .coincap import CoinCapPriceStream

__all__ = ["CoinCapPriceStream"]
