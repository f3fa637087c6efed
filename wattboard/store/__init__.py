"""
Store boundary: realtime database client, record validation and shared feeds.

CHANGELOG:
- 2026-10-16: Export InvalidDeviceError (STORY-112)
- 2026-10-08: Export SubscriptionCache (STORY-105)
- 2026-10-06: Initial creation (STORY-102)

TODO:
- None
"""

from wattboard.store.client import (
    FEED_CONFIG,
    DeviceNotFoundError,
    FeedConfig,
    InvalidDeviceError,
    RealtimeStore,
    StoreError,
)
from wattboard.store.records import TelegramChat, parse_device, parse_reading, parse_snapshot
from wattboard.store.subscriptions import FeedHandle, FeedKey, SubscriptionCache

__all__ = [
    "FEED_CONFIG",
    "DeviceNotFoundError",
    "FeedConfig",
    "FeedHandle",
    "FeedKey",
    "RealtimeStore",
    "StoreError",
    "SubscriptionCache",
    "TelegramChat",
    "parse_device",
    "parse_reading",
    "parse_snapshot",
]
