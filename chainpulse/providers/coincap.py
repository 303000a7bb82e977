"""CoinCap market adapter."""
from __future__ import annotations

import logging
from typing import Any

from ..config import ProviderConfig
from ..errors import ProviderUnavailable
from ..http import JsonHttpClient
from ..metadata import StaticTables
from ..models import Asset, AssetDetail, PricePoint
from . import normalizers

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.coincap.io/v2"


class CoinCapProvider:
    """``/assets`` listing from CoinCap; USD only, 24h change only."""

    def __init__(self, config: ProviderConfig, http: JsonHttpClient | None = None) -> None:
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else None
        self._http = http or JsonHttpClient(
            "coincap",
            config.base_url or DEFAULT_BASE_URL,
            timeout=config.timeout,
            headers=headers,
        )

    @property
    def name(self) -> str:
        return "coincap"

    async def fetch_top_assets(
        self, currency: str, limit: int, category: str | None = None
    ) -> Any:
        if currency.upper() != "USD":
            logger.debug("CoinCap quotes USD only; ignoring currency %s", currency)
        return await self._http.get_json("assets", {"limit": limit})

    def normalize(self, payload: Any, tables: StaticTables) -> list[Asset]:
        return normalizers.normalize_coincap(payload, tables)

    async def fetch_asset_detail(self, symbol: str) -> AssetDetail:
        payload = await self._http.get_json("assets", {"search": symbol.lower(), "limit": 5})
        return normalizers.normalize_coincap_detail(symbol, payload)

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        raise ProviderUnavailable(self.name, "price history is not supported")
