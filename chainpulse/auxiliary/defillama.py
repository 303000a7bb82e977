"""DefiLlama TVL, fees and chain statistics."""
from __future__ import annotations

import logging
from typing import Any

from ..errors import ProviderUnavailable
from ..http import JsonHttpClient
from ..models import ChainStats, to_float

logger = logging.getLogger(__name__)


class DefiLlamaClient:
    """Best-effort DefiLlama lookups; every failure yields ``None``."""

    def __init__(self, base_url: str = "https://api.llama.fi", timeout: float = 10.0) -> None:
        self._http = JsonHttpClient("defillama", base_url, timeout=timeout)

    async def fetch_tvl(self, slug: str) -> float | None:
        """Current TVL of a protocol, e.g. ``uniswap``."""
        try:
            payload = await self._http.get_json(f"tvl/{slug}")
        except ProviderUnavailable as e:
            logger.warning("TVL for %s unavailable: %s", slug, e)
            return None
        if isinstance(payload, bool) or not isinstance(payload, (int, float)):
            logger.warning("Unexpected TVL payload for %s: %r", slug, payload)
            return None
        return to_float(payload)

    async def fetch_fees(self, slug: str) -> float | None:
        """Fees collected by a protocol over the last 24h."""
        try:
            payload = await self._http.get_json(
                f"summary/fees/{slug}", {"dataType": "dailyFees"}
            )
        except ProviderUnavailable as e:
            logger.warning("Fees for %s unavailable: %s", slug, e)
            return None
        if not isinstance(payload, dict) or payload.get("total24h") is None:
            logger.warning("Fees payload for %s has no total24h", slug)
            return None
        return to_float(payload["total24h"])

    async def fetch_chain_stats(self, symbol: str) -> ChainStats | None:
        """The chain whose native token is ``symbol``, with its TVL."""
        try:
            payload = await self._http.get_json("v2/chains")
        except ProviderUnavailable as e:
            logger.warning("Chain stats unavailable: %s", e)
            return None
        if not isinstance(payload, list):
            logger.warning("Unexpected chains payload: %s", type(payload).__name__)
            return None

        wanted = symbol.upper()
        chain: dict[str, Any] | None = next(
            (
                c for c in payload
                if isinstance(c, dict) and (c.get("tokenSymbol") or "").upper() == wanted
            ),
            None,
        )
        if chain is None:
            logger.debug("No chain has native token %s", wanted)
            return None
        return ChainStats(
            name=chain.get("name", ""),
            tvl=to_float(chain.get("tvl")),
            token_symbol=wanted,
        )
