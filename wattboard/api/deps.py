"""
FastAPI dependency injection providers.

Provides the settings, the realtime store client, the subscription cache,
the Telegram client and the cron authentication dependency, all taken from
``app.state`` where the lifespan put them. Tests replace them through
``app.dependency_overrides``.

CHANGELOG:
- 2026-10-10: Add Telegram client and cron auth providers (STORY-109)
- 2026-10-08: Initial creation (STORY-105)
"""

from typing import Annotated

from fastapi import Depends, Request

from wattboard.config import Settings
from wattboard.services.telegram import TelegramClient
from wattboard.store.client import RealtimeStore
from wattboard.store.subscriptions import SubscriptionCache


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> RealtimeStore:
    return request.app.state.store


def get_subscriptions(request: Request) -> SubscriptionCache:
    return request.app.state.subscriptions


def get_telegram(request: Request) -> TelegramClient:
    return request.app.state.telegram


async def require_cron_secret(request: Request) -> None:
    """Run the CronAuth check configured on app.state.

    This thin wrapper exists so that FastAPI's Depends() mechanism can call
    the CronAuth.verify method stored on app.state.cron_auth.
    """
    await request.app.state.cron_auth.verify(request)


# Type aliases for route signatures, e.g.:
#   async def my_route(store: Store):
#       readings = await store.get_readings(...)
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Store = Annotated[RealtimeStore, Depends(get_store)]
Subscriptions = Annotated[SubscriptionCache, Depends(get_subscriptions)]
Telegram = Annotated[TelegramClient, Depends(get_telegram)]
