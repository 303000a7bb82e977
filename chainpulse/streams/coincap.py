"""CoinCap price WebSocket."""
from __future__ import annotations

import logging
import ssl
from typing import AsyncIterator, Iterable

import aiohttp
import certifi

from ..errors import ProviderUnavailable

logger = logging.getLogger(__name__)

DEFAULT_URL = "wss://ws.coincap.io/prices"


class CoinCapPriceStream:
    """One WebSocket connection to CoinCap's ``/prices`` feed.

    Frames are yielded as raw text; parsing belongs to the reconciler.
    """

    def __init__(
        self,
        assets: Iterable[str],
        url: str = DEFAULT_URL,
        heartbeat: float | None = 30.0,
    ) -> None:
        self.url = url
        self.assets = list(assets)
        self.heartbeat = heartbeat
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def subscription_url(self) -> str:
        return f"{self.url}?assets={','.join(self.assets) or 'ALL'}"

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        if self.is_open:
            return
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        self._session = aiohttp.ClientSession(connector=connector)
        try:
            self._ws = await self._session.ws_connect(
                self.subscription_url, heartbeat=self.heartbeat
            )
        except Exception as e:
            await self.close()
            raise ProviderUnavailable("coincap-ws", str(e) or type(e).__name__) from e
        logger.info("Connected to CoinCap price stream (%d assets)", len(self.assets))

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aiter__(self) -> AsyncIterator[str]:
        if self._ws is None:
            raise ProviderUnavailable("coincap-ws", "stream is not connected")
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                if msg.data == "ping":
                    await self._ws.send_str("pong")
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield msg.data.decode("utf-8", errors="replace")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise ProviderUnavailable("coincap-ws", str(self._ws.exception()))
        logger.info("CoinCap price stream closed")
