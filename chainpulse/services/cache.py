"""Aggregation cache: one current snapshot behind a single writer.

Readers call :meth:`AggregationCache.current` and always get a consistent
:class:`CacheView`. Every mutation goes through :meth:`AggregationCache.submit`
so that full refreshes and stream patches never interleave.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Union

from ..models import PricePatch, Snapshot

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheView:
    """What readers see: the snapshot plus its freshness."""

    snapshot: Snapshot | None
    is_stale: bool
    age_seconds: float | None
    last_error: str | None
    refreshed_at: datetime | None


# ---------------------------------------------------------------------------
# Mutation messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReplaceSnapshot:
    snapshot: Snapshot
    generation: int


@dataclass(frozen=True)
class ApplyPatches:
    patches: tuple[PricePatch, ...]


@dataclass(frozen=True)
class MarkRefreshFailed:
    error: str
    generation: int | None = None


Mutation = Union[ReplaceSnapshot, ApplyPatches, MarkRefreshFailed]


@dataclass(frozen=True)
class PatchResult:
    applied: int
    dropped: int


class AggregationCache:
    """Holds the last-known-good snapshot; never blocks readers."""

    def __init__(self, stale_after_seconds: float = 300, clock: Clock | None = None) -> None:
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock or _utcnow
        self._snapshot: Snapshot | None = None
        self._refreshed_at: datetime | None = None
        self._last_error: str | None = None
        self._issued_generation = 0
        self._applied_generation = 0
        self._queue: asyncio.Queue | None = None
        self._writer_running = False
        self.patches_applied = 0
        self.patches_dropped = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current(self) -> CacheView:
        snapshot = self._snapshot
        if snapshot is None or self._refreshed_at is None:
            return CacheView(None, True, None, self._last_error, None)

        age = (self._clock() - self._refreshed_at).total_seconds()
        is_stale = self._last_error is not None or age > self.stale_after_seconds
        return CacheView(snapshot, is_stale, age, self._last_error, self._refreshed_at)

    @property
    def generation(self) -> int:
        """Generation of the snapshot currently held (0 before the first)."""
        return self._applied_generation

    # ------------------------------------------------------------------
    # Direct mutations (writer side)
    # ------------------------------------------------------------------

    def begin_refresh(self) -> int:
        """Issue the generation number for a refresh about to start."""
        self._issued_generation += 1
        return self._issued_generation

    def replace(self, snapshot: Snapshot, generation: int) -> bool:
        """Swap in a full snapshot unless a newer one was already applied."""
        if generation <= self._applied_generation:
            logger.info(
                "Discarding refresh generation %d (current is %d)",
                generation,
                self._applied_generation,
            )
            return False
        self._snapshot = snapshot
        self._applied_generation = generation
        self._refreshed_at = self._clock()
        self._last_error = None
        logger.debug("Snapshot %d from %s: %d assets", generation, snapshot.source, len(snapshot))
        return True

    def apply_patches(self, patches: Iterable[PricePatch]) -> PatchResult:
        """Copy-on-write price update; only ``price`` of matching assets changes."""
        patches = list(patches)
        snapshot = self._snapshot
        if snapshot is None:
            self.patches_dropped += len(patches)
            return PatchResult(0, len(patches))

        known = set(snapshot.ids)
        prices: dict[str, float] = {}
        dropped = 0
        for patch in patches:
            if patch.asset_id in known:
                prices[patch.asset_id] = patch.price
            else:
                dropped += 1

        if prices:
            assets = tuple(
                replace(a, price=prices[a.id]) if a.id in prices else a
                for a in snapshot.assets
            )
            self._snapshot = replace(snapshot, assets=assets)

        applied = len(patches) - dropped
        self.patches_applied += applied
        self.patches_dropped += dropped
        return PatchResult(applied, dropped)

    def mark_refresh_failed(self, error: str, generation: int | None = None) -> bool:
        """Keep the last-known-good snapshot but flag it stale.

        A failure from a cycle at or below the applied generation is ignored;
        a newer snapshot already superseded it.
        """
        if generation is not None and generation <= self._applied_generation:
            logger.info(
                "Ignoring failure of refresh generation %d (current is %d)",
                generation,
                self._applied_generation,
            )
            return False
        self._last_error = error
        return True

    # ------------------------------------------------------------------
    # Single-writer coordination
    # ------------------------------------------------------------------

    def _apply(self, message: Mutation):
        if isinstance(message, ReplaceSnapshot):
            return self.replace(message.snapshot, message.generation)
        if isinstance(message, ApplyPatches):
            return self.apply_patches(message.patches)
        if isinstance(message, MarkRefreshFailed):
            return self.mark_refresh_failed(message.error, message.generation)
        raise TypeError(f"Unknown cache mutation: {type(message).__name__}")

    async def submit(self, message: Mutation):
        """Apply ``message`` through the writer task, or inline if none runs."""
        if not self._writer_running or self._queue is None:
            return self._apply(message)
        done: asyncio.Future = asyncio.get_running_loop().create_future()
        await self._queue.put((message, done))
        return await done

    async def run(self) -> None:
        """Writer task: apply queued mutations one at a time until cancelled."""
        self._queue = asyncio.Queue()
        self._writer_running = True
        try:
            while True:
                message, done = await self._queue.get()
                try:
                    result = self._apply(message)
                except Exception as e:
                    logger.error("Cache mutation %s failed: %s", type(message).__name__, e)
                    if not done.done():
                        done.set_exception(e)
                else:
                    if not done.done():
                        done.set_result(result)
                finally:
                    self._queue.task_done()
        finally:
            self._writer_running = False
            # Anything still queued is applied inline so no caller hangs.
            while not self._queue.empty():
                message, done = self._queue.get_nowait()
                if done.done():
                    continue
                try:
                    done.set_result(self._apply(message))
                except Exception as e:
                    done.set_exception(e)
