"""
Tests for the reference-counted subscription cache.

CHANGELOG:
- 2026-10-16: Cover corrupt identifiers reaching consumers (STORY-112)
- 2026-10-08: Initial creation (STORY-105)
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from tests.factories import reading
from wattboard.core.timestamps import MalformedIdentifier, Resolution
from wattboard.store.client import StoreError
from wattboard.store.subscriptions import FeedKey, SubscriptionCache

KEY = FeedKey("dev-1", Resolution.WEEK)
POLL_S = 0.01


def _snapshot(energy: float) -> list:
    return [reading(datetime(2025, 10, 30, 7), energy)]


async def _next(iterator, timeout: float = 1.0):
    return await asyncio.wait_for(iterator.__anext__(), timeout)


class TestRefcount:
    @pytest.mark.asyncio
    async def test_shared_feed_starts_once(self) -> None:
        fetch = AsyncMock(return_value=_snapshot(1.0))
        cache = SubscriptionCache(fetch, poll_interval_s=60)

        first = cache.acquire(KEY)
        second = cache.acquire(KEY)
        await _next(first.updates())

        assert cache.refcount(KEY) == 2
        assert cache.active_keys() == [KEY]
        fetch.assert_awaited_once_with("dev-1", Resolution.WEEK)

        cache.release(first)
        assert cache.refcount(KEY) == 1
        assert cache.active_keys() == [KEY]

        cache.release(second)
        assert cache.refcount(KEY) == 0
        assert cache.active_keys() == []
        await cache.close()

    @pytest.mark.asyncio
    async def test_double_release_is_a_no_op(self) -> None:
        cache = SubscriptionCache(AsyncMock(return_value=[]), poll_interval_s=60)
        first = cache.acquire(KEY)
        second = cache.acquire(KEY)

        cache.release(first)
        cache.release(first)

        assert cache.refcount(KEY) == 1
        cache.release(second)
        await cache.close()

    @pytest.mark.asyncio
    async def test_last_release_cancels_the_poller(self) -> None:
        fetch = AsyncMock(return_value=_snapshot(1.0))
        cache = SubscriptionCache(fetch, poll_interval_s=POLL_S)

        handle = cache.acquire(KEY)
        task = handle._feed.task
        await _next(handle.updates())
        cache.release(handle)
        await asyncio.sleep(POLL_S * 5)

        assert task is not None and task.cancelled()
        calls = fetch.await_count
        await asyncio.sleep(POLL_S * 5)
        assert fetch.await_count == calls

    @pytest.mark.asyncio
    async def test_distinct_keys_get_distinct_feeds(self) -> None:
        cache = SubscriptionCache(AsyncMock(return_value=[]), poll_interval_s=60)
        other = FeedKey("dev-1", Resolution.YEAR)
        cache.acquire(KEY)
        cache.acquire(other)
        assert set(cache.active_keys()) == {KEY, other}
        await cache.close()
        assert cache.active_keys() == []


class TestUpdates:
    @pytest.mark.asyncio
    async def test_updates_follow_polls(self) -> None:
        fetch = AsyncMock(side_effect=[_snapshot(1.0), _snapshot(2.0), _snapshot(3.0)] + [_snapshot(3.0)] * 100)
        cache = SubscriptionCache(fetch, poll_interval_s=0.05)
        handle = cache.acquire(KEY)
        updates = handle.updates()

        energies = [(await _next(updates))[0].energy for _ in range(3)]

        assert energies == [1.0, 2.0, 3.0]
        cache.release(handle)
        await cache.close()

    @pytest.mark.asyncio
    async def test_late_joiner_gets_latest_snapshot(self) -> None:
        cache = SubscriptionCache(AsyncMock(return_value=_snapshot(5.0)), poll_interval_s=60)
        first = cache.acquire(KEY)
        await _next(first.updates())

        late = cache.acquire(KEY)
        assert late.latest is not None
        snapshot = await _next(late.updates())

        assert snapshot[0].energy == 5.0
        await cache.close()

    @pytest.mark.asyncio
    async def test_release_ends_iteration(self) -> None:
        cache = SubscriptionCache(AsyncMock(return_value=_snapshot(1.0)), poll_interval_s=60)
        handle = cache.acquire(KEY)
        updates = handle.updates()
        await _next(updates)

        waiter = asyncio.ensure_future(updates.__anext__())
        await asyncio.sleep(0)
        cache.release(handle)

        with pytest.raises(StopAsyncIteration):
            await waiter
        await cache.close()

    @pytest.mark.asyncio
    async def test_fetch_errors_do_not_stop_the_feed(self) -> None:
        fetch = AsyncMock(side_effect=[StoreError("boom"), _snapshot(4.0)] + [_snapshot(4.0)] * 100)
        cache = SubscriptionCache(fetch, poll_interval_s=POLL_S)
        handle = cache.acquire(KEY)

        snapshot = await _next(handle.updates())

        assert snapshot[0].energy == 4.0
        assert fetch.await_count >= 2
        await cache.close()

    @pytest.mark.asyncio
    async def test_corrupt_identifiers_reach_every_consumer(self) -> None:
        fetch = AsyncMock(side_effect=[_snapshot(1.0)] + [MalformedIdentifier("2025-13-01")] * 100)
        cache = SubscriptionCache(fetch, poll_interval_s=0.05)
        first = cache.acquire(KEY)
        second = cache.acquire(KEY)
        first_updates = first.updates()
        second_updates = second.updates()
        await _next(first_updates)
        await _next(second_updates)

        with pytest.raises(MalformedIdentifier):
            await _next(first_updates)
        with pytest.raises(MalformedIdentifier):
            await _next(second_updates)
        await cache.close()


class TestValidation:
    def test_poll_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SubscriptionCache(AsyncMock(), poll_interval_s=0)
