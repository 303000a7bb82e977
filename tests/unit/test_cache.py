"""Unit tests for the aggregation cache and its single writer."""
from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from chainpulse.models import PricePatch, Snapshot
from chainpulse.services.cache import (
    AggregationCache,
    ApplyPatches,
    MarkRefreshFailed,
    PatchResult,
    ReplaceSnapshot,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> AggregationCache:
    return AggregationCache(stale_after_seconds=300, clock=clock)


class TestReads:
    def test_empty_cache(self, cache: AggregationCache) -> None:
        view = cache.current()
        assert view.snapshot is None
        assert view.is_stale
        assert view.age_seconds is None

    def test_fresh_snapshot(
        self, cache: AggregationCache, clock: FakeClock, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        clock.advance(10)
        view = cache.current()
        assert view.snapshot is sample_snapshot
        assert not view.is_stale
        assert view.age_seconds == 10
        assert view.refreshed_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_old_snapshot_is_stale_but_served(
        self, cache: AggregationCache, clock: FakeClock, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        clock.advance(301)
        view = cache.current()
        assert view.is_stale
        assert view.snapshot is sample_snapshot


class TestGenerationGuard:
    def test_newer_generation_wins(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        slow = cache.begin_refresh()
        fast = cache.begin_refresh()
        newer = replace(sample_snapshot, source="coingecko")
        assert cache.replace(newer, fast)
        assert not cache.replace(sample_snapshot, slow)
        assert cache.current().snapshot.source == "coingecko"
        assert cache.generation == fast

    def test_same_generation_not_applied_twice(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        gen = cache.begin_refresh()
        assert cache.replace(sample_snapshot, gen)
        assert not cache.replace(sample_snapshot, gen)

    @pytest.mark.asyncio
    async def test_older_failure_does_not_stale_newer_snapshot(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        slow = cache.begin_refresh()
        fast = cache.begin_refresh()
        await cache.submit(ReplaceSnapshot(sample_snapshot, fast))

        marked = await cache.submit(MarkRefreshFailed("old cycle failed", slow))

        assert marked is False
        view = cache.current()
        assert view.snapshot is sample_snapshot
        assert view.is_stale is False
        assert view.last_error is None

    def test_newer_failure_still_flags_stale(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())

        assert cache.mark_refresh_failed("down", cache.begin_refresh())

        view = cache.current()
        assert view.is_stale
        assert view.last_error == "down"


class TestApplyPatches:
    def test_only_price_changes(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        result = cache.apply_patches([PricePatch("btc", 65000.0)])
        assert result == PatchResult(applied=1, dropped=0)

        after = cache.current().snapshot
        assert after.ids == sample_snapshot.ids
        assert after.get("btc") == replace(sample_snapshot.get("btc"), price=65000.0)
        for asset_id in ("eth", "sol", "uni", "bonk"):
            assert after.get(asset_id) == sample_snapshot.get(asset_id)

    def test_original_snapshot_untouched(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        cache.apply_patches([PricePatch("eth", 1.0)])
        assert sample_snapshot.get("eth").price == 3200

    def test_unknown_ids_dropped_and_counted(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        result = cache.apply_patches([PricePatch("doge", 0.1), PricePatch("sol", 151.0)])
        assert result == PatchResult(applied=1, dropped=1)
        assert cache.patches_dropped == 1
        assert cache.current().snapshot.get("doge") is None

    def test_last_patch_wins(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        cache.apply_patches([PricePatch("btc", 1.0), PricePatch("btc", 2.0)])
        assert cache.current().snapshot.get("btc").price == 2.0

    def test_patches_before_first_snapshot(self, cache: AggregationCache) -> None:
        assert cache.apply_patches([PricePatch("btc", 1.0)]) == PatchResult(0, 1)
        assert cache.current().snapshot is None

    def test_patches_do_not_reset_age(
        self, cache: AggregationCache, clock: FakeClock, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        clock.advance(400)
        cache.apply_patches([PricePatch("btc", 1.0)])
        assert cache.current().is_stale


class TestRefreshFailure:
    def test_failure_flags_stale_and_keeps_snapshot(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        cache.replace(sample_snapshot, cache.begin_refresh())
        cache.mark_refresh_failed("All providers failed")
        view = cache.current()
        assert view.snapshot is sample_snapshot
        assert view.is_stale
        assert view.last_error == "All providers failed"

    def test_success_clears_error(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        cache.mark_refresh_failed("down")
        cache.replace(sample_snapshot, cache.begin_refresh())
        view = cache.current()
        assert view.last_error is None
        assert not view.is_stale


class TestSingleWriter:
    @pytest.mark.asyncio
    async def test_submit_inline_without_writer(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        applied = await cache.submit(ReplaceSnapshot(sample_snapshot, cache.begin_refresh()))
        assert applied is True
        assert cache.current().snapshot is sample_snapshot

    @pytest.mark.asyncio
    async def test_submit_through_writer_task(
        self, cache: AggregationCache, sample_snapshot: Snapshot
    ) -> None:
        writer = asyncio.create_task(cache.run())
        await asyncio.sleep(0)
        try:
            gen = cache.begin_refresh()
            results = await asyncio.gather(
                cache.submit(ReplaceSnapshot(sample_snapshot, gen)),
                cache.submit(ApplyPatches((PricePatch("btc", 1.5),))),
                cache.submit(MarkRefreshFailed("late failure")),
            )
        finally:
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

        assert results[0] is True
        assert results[1] == PatchResult(1, 0)
        view = cache.current()
        assert view.snapshot.get("btc").price == 1.5
        assert view.last_error == "late failure"

    @pytest.mark.asyncio
    async def test_unknown_message_rejected(self, cache: AggregationCache) -> None:
        with pytest.raises(TypeError):
            await cache.submit("not a mutation")  # type: ignore[arg-type]
