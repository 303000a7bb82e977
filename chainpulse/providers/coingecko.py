"""CoinGecko market adapter."""
from __future__ import annotations

import logging
from typing import Any

from ..config import ProviderConfig
from ..errors import MalformedPayload
from ..http import JsonHttpClient
from ..metadata import StaticTables
from ..models import Asset, AssetDetail, PricePoint
from . import normalizers

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoProvider:
    """``/coins/markets`` listing with 1h/24h/7d changes and a 7d sparkline."""

    def __init__(self, config: ProviderConfig, http: JsonHttpClient | None = None) -> None:
        headers = {"x-cg-demo-api-key": config.api_key} if config.api_key else None
        self._http = http or JsonHttpClient(
            "coingecko",
            config.base_url or DEFAULT_BASE_URL,
            timeout=config.timeout,
            headers=headers,
        )
        self._currency = "usd"
        self._ids: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "coingecko"

    async def fetch_top_assets(
        self, currency: str, limit: int, category: str | None = None
    ) -> Any:
        self._currency = currency.lower()
        payload = await self._http.get_json(
            "coins/markets",
            {
                "vs_currency": self._currency,
                "order": "market_cap_desc",
                "per_page": limit,
                "page": 1,
                "sparkline": "true",
                "price_change_percentage": "1h,24h,7d",
                "category": category,
            },
        )
        if isinstance(payload, list):
            for entry in payload:
                if isinstance(entry, dict) and entry.get("symbol") and entry.get("id"):
                    self._ids.setdefault(entry["symbol"].lower(), entry["id"])
        return payload

    def normalize(self, payload: Any, tables: StaticTables) -> list[Asset]:
        return normalizers.normalize_coingecko(payload, tables)

    async def _markets_for_symbol(self, symbol: str) -> Any:
        return await self._http.get_json(
            "coins/markets",
            {"vs_currency": self._currency, "symbols": symbol.lower()},
        )

    async def _coin_id(self, symbol: str) -> str:
        """Resolve a symbol to CoinGecko's coin id, remembering the answer."""
        symbol = symbol.lower()
        if symbol in self._ids:
            return self._ids[symbol]
        payload = await self._markets_for_symbol(symbol)
        if not isinstance(payload, list) or not payload or "id" not in payload[0]:
            raise MalformedPayload("coingecko", f"unknown symbol {symbol}")
        self._ids[symbol] = payload[0]["id"]
        return self._ids[symbol]

    async def fetch_asset_detail(self, symbol: str) -> AssetDetail:
        payload = await self._markets_for_symbol(symbol)
        return normalizers.normalize_coingecko_detail(symbol, payload)

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        coin_id = await self._coin_id(symbol)
        payload = await self._http.get_json(
            f"coins/{coin_id}/market_chart",
            {"vs_currency": self._currency, "days": max(1, days)},
        )
        return normalizers.normalize_coingecko_history(payload)
