"""Market provider protocol for one upstream market-data API."""
from typing import Any, Protocol

from ..metadata import StaticTables
from ..models import Asset, AssetDetail, PricePoint


class MarketProvider(Protocol):
    """Abstract interface for a provider in the fallback chain."""

    @property
    def name(self) -> str: ...

    async def fetch_top_assets(
        self, currency: str, limit: int, category: str | None = None
    ) -> Any: ...

    def normalize(self, payload: Any, tables: StaticTables) -> list[Asset]: ...

    async def fetch_asset_detail(self, symbol: str) -> AssetDetail: ...

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]: ...
