"""Market service: wires providers, cache, stream and navigation together."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable

from ..analytics import (
    GlobalStats,
    LeaderboardKind,
    MarketBreadth,
    global_stats,
    leaderboard,
    market_breadth,
)
from ..config import AppConfig, ProviderConfig
from ..errors import RefreshFailed
from ..hierarchy import ROOT_KEY, build_hierarchy
from ..interfaces.market_provider import MarketProvider
from ..interfaces.price_stream import PriceStream
from ..metadata import StaticTables
from ..models import Asset, AssetDetail, AuxiliaryReport, HierarchyNode, LayoutCell, PricePoint
from ..navigation import NavigationController, NavigationState, SizingMetric, Timeframe, ViewMode
from ..providers import CoinCapProvider, CoinGeckoProvider, CryptoCompareProvider, ProviderChain
from ..streams import CoinCapPriceStream
from ..treemap import layout_for_state
from .auxiliary_service import AuxiliaryService
from .cache import AggregationCache, CacheView, MarkRefreshFailed, ReplaceSnapshot
from .reconciler import Backoff, PatchReconciler

logger = logging.getLogger(__name__)

# Registry of market provider factories keyed by provider name.
_PROVIDER_FACTORIES: dict[str, Callable[[ProviderConfig], MarketProvider]] = {
    "cryptocompare": lambda cfg: CryptoCompareProvider(cfg),
    "coingecko": lambda cfg: CoinGeckoProvider(cfg),
    "coincap": lambda cfg: CoinCapProvider(cfg),
}


class MarketService:
    """Keeps one live snapshot and serves hierarchy and layout views of it."""

    def __init__(
        self,
        config: AppConfig,
        providers: list[MarketProvider] | None = None,
        stream_factory: Callable[[], PriceStream] | None = None,
        auxiliary: AuxiliaryService | None = None,
    ) -> None:
        self._config = config
        tables_cfg = config.tables
        self.tables = StaticTables.merged(
            sectors=tables_cfg.sectors,
            ecosystems=tables_cfg.ecosystems,
            defillama_slugs=tables_cfg.defillama_slugs,
            stream_keys=tables_cfg.stream_keys,
        )

        # Build providers in configured priority order
        if providers is None:
            providers = []
            for provider_cfg in config.providers:
                factory = _PROVIDER_FACTORIES.get(provider_cfg.name)
                if factory:
                    providers.append(factory(provider_cfg))
                else:
                    logger.warning("No factory for provider '%s'", provider_cfg.name)
        self.chain = ProviderChain(providers, self.tables)

        self.cache = AggregationCache(config.refresh.stale_after_seconds)

        nav = config.navigation
        self.navigation = NavigationController(
            NavigationState(
                view_mode=ViewMode(nav.view_mode),
                sizing_metric=SizingMetric(nav.sizing_metric),
                timeframe=Timeframe(nav.timeframe),
            )
        )

        self.auxiliary = auxiliary or AuxiliaryService(config.auxiliary, self.tables)

        self.reconciler: PatchReconciler | None = None
        if config.stream.enabled or stream_factory is not None:
            self.reconciler = PatchReconciler(
                self.cache,
                stream_factory or self._default_stream,
                self.tables,
                Backoff(config.stream.initial_backoff, config.stream.max_backoff),
            )

    def _default_stream(self) -> PriceStream:
        return CoinCapPriceStream(
            self.tables.stream_keys.keys(),
            url=self._config.stream.url,
            heartbeat=self._config.stream.heartbeat_seconds,
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Run one full refresh; returns True if a new snapshot was applied.

        Chain exhaustion is logged and the last-known-good snapshot is kept
        (flagged stale) rather than raised.
        """
        refresh_cfg = self._config.refresh
        generation = self.cache.begin_refresh()
        try:
            snapshot = await self.chain.fetch_snapshot(
                refresh_cfg.currency, refresh_cfg.limit, refresh_cfg.category
            )
        except RefreshFailed as e:
            logger.error("Refresh %d failed: %s", generation, e)
            await self.cache.submit(MarkRefreshFailed(str(e), generation))
            return False
        return await self.cache.submit(ReplaceSnapshot(snapshot, generation))

    async def run_continuous(self, interval_seconds: int | None = None) -> None:
        """Refresh on a timer while the price stream patches in between."""
        interval = interval_seconds or self._config.refresh.interval_seconds
        logger.info("Starting market refresh loop (every %d seconds)", interval)

        tasks = [asyncio.create_task(self.cache.run(), name="cache-writer")]
        if self.reconciler is not None:
            tasks.append(asyncio.create_task(self.reconciler.run(), name="price-stream"))

        try:
            while True:
                try:
                    await self.refresh()
                    await asyncio.sleep(interval)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error("Error in refresh loop: %s", e)
                    await asyncio.sleep(interval)
        finally:
            if self.reconciler is not None:
                self.reconciler.stop()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Produced interface
    # ------------------------------------------------------------------

    def snapshot_view(self) -> CacheView:
        return self.cache.current()

    def _assets(self) -> tuple[Asset, ...]:
        snapshot = self.cache.current().snapshot
        return snapshot.assets if snapshot is not None else ()

    def hierarchy(self, state: NavigationState | None = None) -> HierarchyNode:
        state = state or self.navigation.state
        assets = self._assets()
        if not assets:
            return HierarchyNode(key=ROOT_KEY, name=ROOT_KEY, value=0.0)
        return build_hierarchy(assets, state)

    def layout(
        self, width: float, height: float, state: NavigationState | None = None
    ) -> list[LayoutCell]:
        state = state or self.navigation.state
        return layout_for_state(
            self.hierarchy(state), width, height, state, self._config.layout
        )

    def status(self) -> dict[str, Any]:
        view = self.cache.current()
        snapshot = view.snapshot
        status: dict[str, Any] = {
            "source": snapshot.source if snapshot else None,
            "asset_count": len(snapshot) if snapshot else 0,
            "is_stale": view.is_stale,
            "age_seconds": view.age_seconds,
            "last_error": view.last_error,
            "stream_connected": bool(self.reconciler and self.reconciler.is_connected),
        }
        if self.reconciler is not None:
            stats = self.reconciler.stats
            status.update(
                patches_applied=stats.applied,
                patches_dropped=stats.dropped,
                heartbeats=stats.heartbeats,
                reconnects=stats.reconnects,
            )
        return status

    async def asset_detail(self, symbol: str) -> AssetDetail | None:
        """Detail for one asset with DefiLlama TVL merged in when known."""
        try:
            detail = await self.chain.fetch_asset_detail(symbol)
        except RefreshFailed as e:
            logger.warning("No detail for %s: %s", symbol, e)
            return None
        tvl = await self.auxiliary.fetch_tvl(symbol)
        if tvl is not None:
            detail = replace(detail, tvl=tvl)
        return detail

    async def price_history(self, symbol: str, days: int = 7) -> list[PricePoint]:
        try:
            return await self.chain.fetch_history(symbol, days)
        except RefreshFailed as e:
            logger.warning("No history for %s: %s", symbol, e)
            return []

    async def auxiliary_report(self, symbol: str) -> AuxiliaryReport:
        return await self.auxiliary.report(symbol)

    # ------------------------------------------------------------------
    # Analytics over the current snapshot
    # ------------------------------------------------------------------

    def global_stats(self) -> GlobalStats:
        return global_stats(self._assets())

    def market_breadth(self) -> MarketBreadth:
        return market_breadth(self._assets(), self.navigation.state.timeframe)

    def leaderboard(
        self, kind: LeaderboardKind | str = LeaderboardKind.GAINERS, limit: int = 10
    ) -> list[Asset]:
        return leaderboard(self._assets(), kind, self.navigation.state.timeframe, limit)
