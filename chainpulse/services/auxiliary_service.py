"""Concurrent best-effort join of the auxiliary sources for one asset."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable

from ..auxiliary import (
    BinanceFuturesClient,
    DefiLlamaClient,
    EtherscanGasClient,
    SentimentClient,
)
from ..config import AuxiliaryConfig
from ..metadata import StaticTables
from ..models import AuxiliaryReport

logger = logging.getLogger(__name__)


class AuxiliaryService:
    """Fan out to every auxiliary source; any of them may come back empty."""

    def __init__(
        self,
        config: AuxiliaryConfig | None = None,
        tables: StaticTables | None = None,
        defillama: DefiLlamaClient | None = None,
        sentiment: SentimentClient | None = None,
        binance: BinanceFuturesClient | None = None,
        etherscan: EtherscanGasClient | None = None,
    ) -> None:
        config = config or AuxiliaryConfig()
        self._tables = tables or StaticTables()
        self.defillama = defillama or DefiLlamaClient(config.defillama_url, config.timeout)
        self.sentiment = sentiment or SentimentClient(config.sentiment_url, config.timeout)
        self.binance = binance or BinanceFuturesClient(
            config.binance_futures_url, config.timeout
        )
        self.etherscan = etherscan or EtherscanGasClient(
            config.etherscan_url, config.etherscan_api_key, config.timeout
        )

    async def fetch_tvl(self, symbol: str) -> float | None:
        slug = self._tables.slug_for(symbol)
        if slug is None:
            return None
        return await self.defillama.fetch_tvl(slug)

    async def report(self, symbol: str) -> AuxiliaryReport:
        """Fetch everything concurrently; failures land in ``failures``."""
        slug = self._tables.slug_for(symbol)
        calls: dict[str, Awaitable[Any]] = {
            "gas_price_gwei": self.etherscan.fetch_gas_price(),
            "sentiment": self.sentiment.fetch_sentiment_index(),
            "long_short": self.binance.fetch_long_short_ratio(symbol),
            "chain_stats": self.defillama.fetch_chain_stats(symbol),
        }
        if slug is not None:
            calls["tvl"] = self.defillama.fetch_tvl(slug)
            calls["fees_24h"] = self.defillama.fetch_fees(slug)

        results = await asyncio.gather(*calls.values(), return_exceptions=True)

        fields: dict[str, Any] = {}
        failures: list[str] = []
        for name, result in zip(calls, results):
            if isinstance(result, BaseException):
                logger.warning("Auxiliary %s for %s raised: %s", name, symbol, result)
                failures.append(name)
            elif result is None:
                failures.append(name)
            else:
                fields[name] = result

        if failures:
            logger.info("Auxiliary report for %s missing: %s", symbol, ", ".join(failures))
        return AuxiliaryReport(symbol=symbol.lower(), failures=tuple(failures), **fields)
