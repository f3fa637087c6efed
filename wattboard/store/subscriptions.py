"""
Reference-counted sharing of upstream reading feeds.

Every chart consumer of the same ``(device_id, resolution)`` pair shares one
upstream feed: a polling task that reloads the snapshot from the store every
``poll_interval_s`` seconds and publishes it to all handles. The first
``acquire`` starts the task, later ones only bump the count, and the task is
cancelled when the last handle is released.

Consumers iterate ``FeedHandle.updates()``; a late joiner immediately receives
the latest snapshot already fetched for the feed.
A fetch that returns corrupt identifiers ends every consumer's iteration
with ``MalformedIdentifier``; other fetch failures are logged and retried.

CHANGELOG:
- 2026-10-16: Corrupt identifiers end the consumers' updates with the error (STORY-112)
- 2026-10-08: Initial creation (STORY-105)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass

from wattboard.core.models import Reading
from wattboard.core.timestamps import MalformedIdentifier, Resolution

logger = logging.getLogger(__name__)

__all__ = ["FeedHandle", "FeedKey", "SnapshotFetcher", "SubscriptionCache"]

SnapshotFetcher = Callable[[str, Resolution], Awaitable[list[Reading]]]
"""Loads one snapshot, e.g. the bound ``RealtimeStore.get_readings``."""


@dataclass(frozen=True)
class FeedKey:
    """Identity of a shared feed."""

    device_id: str
    resolution: Resolution


class _Feed:
    """Shared state of one upstream feed."""

    def __init__(self, key: FeedKey) -> None:
        self.key = key
        self.refcount = 0
        self.latest: list[Reading] | None = None
        self.error: MalformedIdentifier | None = None
        self.version = 0
        self.closed = False
        self.changed = asyncio.Event()
        self.task: asyncio.Task[None] | None = None

    def publish(self, snapshot: list[Reading]) -> None:
        self.latest = snapshot
        self.error = None
        self._bump()

    def fail(self, exc: MalformedIdentifier) -> None:
        self.error = exc
        self._bump()

    def _bump(self) -> None:
        self.version += 1
        # Swap before setting so waiters that wake re-arm on a fresh event.
        event, self.changed = self.changed, asyncio.Event()
        event.set()

    def close(self) -> None:
        self.closed = True
        self.changed.set()
        if self.task is not None:
            self.task.cancel()


class FeedHandle:
    """One consumer's claim on a shared feed.

    Obtained from :meth:`SubscriptionCache.acquire` and given back with
    :meth:`SubscriptionCache.release`.
    """

    def __init__(self, feed: _Feed) -> None:
        self._feed = feed
        self._released = asyncio.Event()

    @property
    def key(self) -> FeedKey:
        return self._feed.key

    @property
    def released(self) -> bool:
        return self._released.is_set()

    @property
    def latest(self) -> list[Reading] | None:
        """Most recent snapshot of the feed, None before the first fetch."""
        return self._feed.latest

    async def updates(self) -> AsyncIterator[list[Reading]]:
        """Yield every snapshot published from now on.

        The latest snapshot, if any, is yielded first. Iteration stops when
        this handle is released or the cache is closed.

        Raises:
            MalformedIdentifier: If the latest fetch returned corrupt
                identifiers.
        """
        seen = 0
        feed = self._feed
        while not self.released and not feed.closed:
            if feed.version > seen:
                seen = feed.version
                if feed.error is not None:
                    raise feed.error
                if feed.latest is not None:
                    yield feed.latest
                continue

            changed = asyncio.ensure_future(feed.changed.wait())
            released = asyncio.ensure_future(self._released.wait())
            try:
                await asyncio.wait({changed, released}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                changed.cancel()
                released.cancel()

    def _release(self) -> None:
        self._released.set()


class SubscriptionCache:
    """Registry of shared upstream feeds keyed by :class:`FeedKey`.

    Args:
        fetch: Coroutine function loading a snapshot for a device and
            resolution.
        poll_interval_s: Seconds between two fetches of the same feed.

    Usage::

        cache = SubscriptionCache(store.get_readings, poll_interval_s=15)
        handle = cache.acquire(FeedKey("dev-1", Resolution.WEEK))
        try:
            async for snapshot in handle.updates():
                ...
        finally:
            cache.release(handle)
    """

    def __init__(self, fetch: SnapshotFetcher, poll_interval_s: float = 15.0) -> None:
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be > 0")
        self._fetch = fetch
        self._poll_interval_s = poll_interval_s
        self._feeds: dict[FeedKey, _Feed] = {}
        self._stopping: set[asyncio.Task[None]] = set()

    def acquire(self, key: FeedKey) -> FeedHandle:
        """Join the feed for *key*, starting it if nobody holds it yet.

        Must be called from a running event loop.
        """
        feed = self._feeds.get(key)
        if feed is None:
            feed = _Feed(key)
            feed.task = asyncio.get_running_loop().create_task(
                self._poll(feed),
                name=f"feed:{key.device_id}:{key.resolution.value}",
            )
            self._feeds[key] = feed
            logger.info("Started feed device=%s resolution=%s", key.device_id, key.resolution.value)
        feed.refcount += 1
        return FeedHandle(feed)

    def release(self, handle: FeedHandle) -> None:
        """Give back a handle; the feed stops when its count reaches zero.

        Releasing the same handle twice has no effect.
        """
        if handle.released:
            return
        handle._release()

        feed = handle._feed
        feed.refcount -= 1
        if feed.refcount > 0:
            return

        feed.close()
        if feed.task is not None and not feed.task.done():
            self._stopping.add(feed.task)
            feed.task.add_done_callback(self._stopping.discard)
        if self._feeds.get(feed.key) is feed:
            del self._feeds[feed.key]
        logger.info(
            "Stopped feed device=%s resolution=%s",
            feed.key.device_id,
            feed.key.resolution.value,
        )

    def refcount(self, key: FeedKey) -> int:
        feed = self._feeds.get(key)
        return feed.refcount if feed is not None else 0

    def active_keys(self) -> list[FeedKey]:
        return list(self._feeds)

    async def close(self) -> None:
        """Stop every feed and wait for the polling tasks to finish."""
        feeds = list(self._feeds.values())
        self._feeds.clear()
        for feed in feeds:
            feed.close()
        tasks = [feed.task for feed in feeds if feed.task is not None]
        tasks.extend(self._stopping)
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if feeds:
            logger.info("Closed %d feed(s)", len(feeds))

    async def _poll(self, feed: _Feed) -> None:
        key = feed.key
        while not feed.closed:
            try:
                snapshot = await self._fetch(key.device_id, key.resolution)
            except MalformedIdentifier as exc:
                logger.error(
                    "Feed device=%s resolution=%s returned corrupt identifiers",
                    key.device_id,
                    key.resolution.value,
                    exc_info=True,
                )
                feed.fail(exc)
            except Exception:
                logger.warning(
                    "Feed device=%s resolution=%s fetch failed",
                    key.device_id,
                    key.resolution.value,
                    exc_info=True,
                )
            else:
                feed.publish(snapshot)
            await asyncio.sleep(self._poll_interval_s)
