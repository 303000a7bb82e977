"""Patch stream reconciler: applies sparse price deltas to the cached snapshot.

The stream only ever changes ``price``; every other field waits for the next
full refresh. Connection loss is not an error for callers, it only flips
:attr:`PatchReconciler.is_connected` while the supervisor reconnects with
exponential backoff.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from ..errors import MalformedPayload
from ..interfaces.price_stream import PriceStream
from ..metadata import StaticTables
from ..models import PricePatch, Snapshot, is_finite, to_float
from .cache import AggregationCache, ApplyPatches

logger = logging.getLogger(__name__)

HEARTBEAT_FRAMES = frozenset({"ping", "pong", "heartbeat"})


# ---------------------------------------------------------------------------
# Message parsing
# ---------------------------------------------------------------------------


def parse_stream_message(raw: Any) -> list[tuple[str, float]] | None:
    """Parse one frame into ``(key, price)`` pairs in receipt order.

    Returns ``None`` for a heartbeat. Raises :class:`MalformedPayload` for
    anything that is neither a heartbeat nor a price update.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        text = raw.strip()
        if text.lower() in HEARTBEAT_FRAMES:
            return None
        try:
            raw = json.loads(text)
        except ValueError as e:
            raise MalformedPayload("stream", f"not JSON: {text[:40]!r}") from e

    if isinstance(raw, dict):
        if str(raw.get("type", "")).lower() in HEARTBEAT_FRAMES:
            return None
        items = list(raw.items())
    elif isinstance(raw, list):
        items = []
        for entry in raw:
            if not isinstance(entry, dict) or "id" not in entry or "p" not in entry:
                raise MalformedPayload("stream", f"bad list entry: {entry!r}")
            items.append((entry["id"], entry["p"]))
    else:
        raise MalformedPayload("stream", f"unexpected frame type {type(raw).__name__}")

    updates: list[tuple[str, float]] = []
    for key, price in items:
        if not is_finite(price) or to_float(price) < 0:
            logger.debug("Skipping non-numeric price for %s: %r", key, price)
            continue
        updates.append((str(key).lower(), to_float(price)))
    return updates


def resolve_stream_key(
    key: str, snapshot: Snapshot | None, tables: StaticTables
) -> str | None:
    """Map a stream key to a canonical asset id.

    The static table wins; otherwise the key is matched against asset names
    in the snapshot (``"Shiba Inu"`` matches ``shiba inu`` and ``shiba-inu``).
    """
    symbol = tables.symbol_for_stream_key(key)
    if symbol:
        return symbol.lower()
    if snapshot is None:
        return None
    key = key.lower()
    for asset in snapshot.assets:
        name = asset.name.lower()
        if name and (key == name or key == name.replace(" ", "-")):
            return asset.id
    return None


# ---------------------------------------------------------------------------
# Reconnect policy
# ---------------------------------------------------------------------------


class Backoff:
    """Exponential reconnect delay: initial, doubling, capped."""

    def __init__(self, initial: float = 1.0, maximum: float = 30.0) -> None:
        self.initial = initial
        self.maximum = maximum
        self._attempt = 0

    def next_delay(self) -> float:
        delay = min(self.initial * (2 ** self._attempt), self.maximum)
        if delay < self.maximum:
            self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


@dataclass
class StreamStats:
    applied: int = 0
    dropped: int = 0
    heartbeats: int = 0
    malformed: int = 0
    reconnects: int = 0


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


class PatchReconciler:
    """Consumes a :class:`PriceStream` and feeds price patches to the cache."""

    def __init__(
        self,
        cache: AggregationCache,
        stream_factory: Callable[[], PriceStream],
        tables: StaticTables | None = None,
        backoff: Backoff | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._cache = cache
        self._stream_factory = stream_factory
        self._tables = tables or StaticTables()
        self.backoff = backoff or Backoff()
        self._sleep = sleep
        self._stream: PriceStream | None = None
        self._running = False
        self.state = ConnectionState.DISCONNECTED
        self.stats = StreamStats()

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.OPEN

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def reconcile(self, raw: Any) -> list[PricePatch]:
        """Turn one frame into patches against the current snapshot.

        Heartbeats, malformed frames and unresolvable keys are counted and
        produce no patches.
        """
        try:
            updates = parse_stream_message(raw)
        except MalformedPayload as e:
            self.stats.malformed += 1
            logger.warning("Dropping malformed stream message: %s", e.reason)
            return []
        if updates is None:
            self.stats.heartbeats += 1
            return []

        snapshot = self._cache.current().snapshot
        patches: list[PricePatch] = []
        for key, price in updates:
            asset_id = resolve_stream_key(key, snapshot, self._tables)
            if asset_id is None:
                self.stats.dropped += 1
                logger.debug("Unresolved stream key %s", key)
                continue
            patches.append(PricePatch(asset_id=asset_id, price=price))
        return patches

    async def handle_message(self, raw: Any) -> None:
        patches = self.reconcile(raw)
        if not patches:
            return
        result = await self._cache.submit(ApplyPatches(tuple(patches)))
        self.stats.applied += result.applied
        self.stats.dropped += result.dropped

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the stream; a no-op while a connection is pending or open."""
        if self.state is not ConnectionState.DISCONNECTED:
            logger.debug("Stream connect skipped, already %s", self.state.value)
            return
        self.state = ConnectionState.CONNECTING
        stream = self._stream_factory()
        try:
            await stream.connect()
        except Exception:
            self.state = ConnectionState.DISCONNECTED
            raise
        self._stream = stream
        self.state = ConnectionState.OPEN
        self.backoff.reset()
        logger.info("Price stream connected")

    async def disconnect(self) -> None:
        stream, self._stream = self._stream, None
        was_open = self.state is ConnectionState.OPEN
        self.state = ConnectionState.DISCONNECTED
        if stream is not None:
            try:
                await stream.close()
            except Exception as e:
                logger.warning("Error closing price stream: %s", e)
        if was_open:
            logger.info("Price stream disconnected")

    async def _consume(self) -> None:
        if self._stream is None:
            return
        async for raw in self._stream:
            await self.handle_message(raw)

    async def run(self) -> None:
        """Supervisor: connect, consume, and reconnect with backoff until stopped."""
        self._running = True
        try:
            while self._running:
                try:
                    await self.connect()
                    await self._consume()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning("Price stream error: %s", e)
                finally:
                    await self.disconnect()

                if not self._running:
                    break
                delay = self.backoff.next_delay()
                self.stats.reconnects += 1
                logger.info("Reconnecting price stream in %.0fs", delay)
                await self._sleep(delay)
        finally:
            self._running = False

    def stop(self) -> None:
        """Ask the supervisor loop to exit after the current connection ends."""
        self._running = False
