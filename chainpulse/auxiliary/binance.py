"""Binance futures long/short account ratio."""
from __future__ import annotations

import logging

from ..errors import ProviderUnavailable
from ..http import JsonHttpClient
from ..models import LongShortRatio, to_float

logger = logging.getLogger(__name__)


class BinanceFuturesClient:
    def __init__(
        self, base_url: str = "https://fapi.binance.com", timeout: float = 10.0
    ) -> None:
        self._http = JsonHttpClient("binance", base_url, timeout=timeout)

    async def fetch_long_short_ratio(self, symbol: str) -> LongShortRatio | None:
        """Latest global long/short account ratio for ``<SYMBOL>USDT``."""
        pair = f"{symbol.upper()}USDT"
        try:
            payload = await self._http.get_json(
                "futures/data/globalLongShortAccountRatio",
                {"symbol": pair, "period": "5m", "limit": 1},
            )
        except ProviderUnavailable as e:
            logger.warning("Long/short ratio for %s unavailable: %s", pair, e)
            return None

        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            logger.warning("No long/short data for %s", pair)
            return None
        row = payload[0]
        return LongShortRatio(
            ratio=to_float(row.get("longShortRatio")),
            long_pct=to_float(row.get("longAccount")) * 100,
            short_pct=to_float(row.get("shortAccount")) * 100,
        )
