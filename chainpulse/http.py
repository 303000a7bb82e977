"""JSON-over-HTTP client with a bounded timeout per call."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from .errors import MalformedPayload, ProviderUnavailable

logger = logging.getLogger(__name__)


class JsonHttpClient:
    """GET JSON documents from one upstream; every failure is ProviderUnavailable."""

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = dict(headers or {})

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get_json(self, path: str = "", params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            ProviderUnavailable: timeout, network error or non-2xx status.
            MalformedPayload: the body is not valid JSON.
        """
        url = self._url(path)
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        query = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url,
                    params=query,
                    headers=self.headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if not 200 <= response.status < 300:
                        raise ProviderUnavailable(self.name, f"HTTP {response.status}")
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise MalformedPayload(self.name, f"invalid JSON: {e}") from e
        except ProviderUnavailable:
            raise
        except asyncio.TimeoutError as e:
            logger.warning("%s request to %s timed out after %ss", self.name, url, self.timeout)
            raise ProviderUnavailable(self.name, f"timeout after {self.timeout}s") from e
        except Exception as e:
            logger.warning("%s request to %s failed: %s", self.name, url, e)
            raise ProviderUnavailable(self.name, str(e) or type(e).__name__) from e
