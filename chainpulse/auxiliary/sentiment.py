"""Fear & greed index from alternative.me."""
from __future__ import annotations

import logging

from ..errors import ProviderUnavailable
from ..http import JsonHttpClient
from ..models import SentimentIndex

logger = logging.getLogger(__name__)


class SentimentClient:
    def __init__(
        self, url: str = "https://api.alternative.me/fng/", timeout: float = 10.0
    ) -> None:
        self._http = JsonHttpClient("alternative.me", url, timeout=timeout)

    async def fetch_sentiment_index(self) -> SentimentIndex | None:
        """Latest fear & greed reading, or ``None`` if it cannot be fetched."""
        try:
            payload = await self._http.get_json(params={"limit": 1})
        except ProviderUnavailable as e:
            logger.warning("Sentiment index unavailable: %s", e)
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not data:
            logger.warning("Sentiment payload has no data")
            return None
        latest = data[0]
        try:
            value = int(latest["value"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Sentiment payload has no numeric value: %r", latest)
            return None
        return SentimentIndex(
            value=value, classification=latest.get("value_classification", "")
        )
