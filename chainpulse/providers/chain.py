"""Ordered provider fallback chain."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence, TypeVar

from ..errors import MalformedPayload, ProviderUnavailable, RefreshFailed
from ..interfaces.market_provider import MarketProvider
from ..metadata import StaticTables
from ..models import AssetDetail, PricePoint, Snapshot
from .normalizers import dedupe_assets

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderChain:
    """Try providers in priority order; the first one that succeeds wins.

    There is no merge across providers: a snapshot always comes from exactly
    one source. An empty result counts as a failure.
    """

    def __init__(
        self,
        providers: Sequence[MarketProvider],
        tables: StaticTables | None = None,
        timeout: float | None = None,
    ) -> None:
        self._providers = list(providers)
        self._tables = tables or StaticTables()
        self._timeout = timeout

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    async def _attempt(
        self, provider: MarketProvider, call: Callable[[], Awaitable[T]]
    ) -> T:
        try:
            if self._timeout is None:
                return await call()
            return await asyncio.wait_for(call(), timeout=self._timeout)
        except ProviderUnavailable:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderUnavailable(provider.name, f"timeout after {self._timeout}s") from e
        except Exception as e:
            raise ProviderUnavailable(provider.name, str(e) or type(e).__name__) from e

    async def _first_success(
        self, what: str, make_call: Callable[[MarketProvider], Callable[[], Awaitable[T]]]
    ) -> tuple[MarketProvider, T]:
        failures: list[ProviderUnavailable] = []
        for index, provider in enumerate(self._providers):
            try:
                result = await self._attempt(provider, make_call(provider))
            except ProviderUnavailable as e:
                failures.append(e)
                logger.warning("%s from %s failed: %s", what, provider.name, e.reason)
                if index < len(self._providers) - 1:
                    logger.info("Falling back to next provider for %s", what)
                continue

            if index > 0:
                logger.info("%s served by fallback provider %s", what, provider.name)
            return provider, result

        raise RefreshFailed(failures)

    async def fetch_snapshot(
        self, currency: str = "USD", limit: int = 100, category: str | None = None
    ) -> Snapshot:
        """Fetch and normalize the top assets from the first healthy provider.

        Raises:
            RefreshFailed: every provider failed or returned nothing.
        """

        def make_call(provider: MarketProvider):
            async def call():
                payload = await provider.fetch_top_assets(currency, limit, category)
                assets = dedupe_assets(provider.normalize(payload, self._tables))
                if not assets:
                    raise MalformedPayload(provider.name, "empty asset list")
                return assets

            return call

        provider, assets = await self._first_success("Snapshot", make_call)
        logger.info("Fetched %d assets from %s", len(assets), provider.name)
        return Snapshot(
            assets=tuple(assets),
            fetched_at=datetime.now(timezone.utc),
            source=provider.name,
        )

    async def fetch_asset_detail(self, symbol: str) -> AssetDetail:
        _, detail = await self._first_success(
            f"Detail for {symbol}", lambda p: lambda: p.fetch_asset_detail(symbol)
        )
        return detail

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        def make_call(provider: MarketProvider):
            async def call():
                points = await provider.fetch_history(symbol, days)
                if not points:
                    raise MalformedPayload(provider.name, "empty history")
                return points

            return call

        _, points = await self._first_success(f"History for {symbol}", make_call)
        return points
