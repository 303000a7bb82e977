"""Ethereum gas price from the Etherscan gas oracle."""
from __future__ import annotations

import logging

from ..errors import ProviderUnavailable
from ..http import JsonHttpClient
from ..models import to_float

logger = logging.getLogger(__name__)


class EtherscanGasClient:
    def __init__(
        self,
        url: str = "https://api.etherscan.io/api",
        api_key: str = "",
        timeout: float = 10.0,
    ) -> None:
        self._http = JsonHttpClient("etherscan", url, timeout=timeout)
        self._api_key = api_key

    async def fetch_gas_price(self) -> float | None:
        """Proposed gas price in gwei."""
        try:
            payload = await self._http.get_json(
                params={
                    "module": "gastracker",
                    "action": "gasoracle",
                    "apikey": self._api_key or None,
                }
            )
        except ProviderUnavailable as e:
            logger.warning("Gas price unavailable: %s", e)
            return None

        if not isinstance(payload, dict) or str(payload.get("status")) != "1":
            message = payload.get("result") if isinstance(payload, dict) else payload
            logger.warning("Etherscan gas oracle error: %s", message)
            return None
        result = payload.get("result")
        if not isinstance(result, dict) or "ProposeGasPrice" not in result:
            logger.warning("Gas oracle payload has no ProposeGasPrice")
            return None
        return to_float(result["ProposeGasPrice"])
