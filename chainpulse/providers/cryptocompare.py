"""CryptoCompare market adapter."""
from __future__ import annotations

import logging
from typing import Any

from ..config import ProviderConfig
from ..http import JsonHttpClient
from ..metadata import StaticTables
from ..models import Asset, AssetDetail, PricePoint
from . import normalizers

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://min-api.cryptocompare.com/data"


class CryptoCompareProvider:
    """Top-by-market-cap listing from CryptoCompare (no 7d window)."""

    def __init__(self, config: ProviderConfig, http: JsonHttpClient | None = None) -> None:
        headers = {"authorization": f"Apikey {config.api_key}"} if config.api_key else None
        self._http = http or JsonHttpClient(
            "cryptocompare",
            config.base_url or DEFAULT_BASE_URL,
            timeout=config.timeout,
            headers=headers,
        )
        self._currency = "USD"

    @property
    def name(self) -> str:
        return "cryptocompare"

    async def fetch_top_assets(
        self, currency: str, limit: int, category: str | None = None
    ) -> Any:
        # CryptoCompare has no category filter on this endpoint
        self._currency = currency.upper()
        return await self._http.get_json(
            "top/mktcapfull", {"limit": limit, "tsym": self._currency}
        )

    def normalize(self, payload: Any, tables: StaticTables) -> list[Asset]:
        return normalizers.normalize_cryptocompare(payload, tables)

    async def fetch_asset_detail(self, symbol: str) -> AssetDetail:
        fsym = symbol.upper()
        price_payload = await self._http.get_json(
            "pricemultifull", {"fsyms": fsym, "tsyms": self._currency}
        )
        info_payload = await self._http.get_json(
            "coin/generalinfo", {"fsyms": fsym, "tsym": self._currency}
        )
        return normalizers.normalize_cryptocompare_detail(symbol, price_payload, info_payload)

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        """Hourly closes: 24 candles for one day, otherwise ``days * 24``."""
        limit = 24 if days <= 1 else days * 24
        payload = await self._http.get_json(
            "v2/histohour",
            {"fsym": symbol.upper(), "tsym": self._currency, "limit": limit},
        )
        return normalizers.normalize_cryptocompare_history(payload)
