"""
Shared test fixtures for Wattboard tests.

Provides an isolated environment, mocked store and Telegram clients, and a
configured TestClient for FastAPI integration testing. Environment variables
are set to test values so the application can start without a real store,
Redis or Telegram.

CHANGELOG:
- 2026-10-10: Add mocked Telegram client and cron secret (STORY-109)
- 2026-10-05: Initial creation with app fixture and mocked store (STORY-101)
"""

from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from wattboard.config import get_settings
from wattboard.services.telegram import TelegramClient
from wattboard.store.client import RealtimeStore

CRON_SECRET = "test-cron-secret"

_ENV_KEYS = (
    "STORE_URL",
    "STORE_AUTH_TOKEN",
    "STORE_TIMEOUT_S",
    "REDIS_URL",
    "CACHE_TTL_S",
    "FEED_POLL_INTERVAL_S",
    "CRON_SECRET",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_API_URL",
    "TIMEZONE",
    "LOG_LEVEL",
    "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Set required environment variables for testing.

    Runs from an empty directory so a developer's .env is never picked up,
    and clears the cached Settings before and after each test.
    """
    monkeypatch.chdir(tmp_path)
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("STORE_URL", "https://wattboard-test.example.com")
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:test-bot-token")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def mock_store() -> AsyncMock:
    """Create a mock realtime store client.

    Returns:
        AsyncMock: Every RealtimeStore coroutine method is an AsyncMock.
    """
    store = AsyncMock(spec=RealtimeStore)
    store.get_readings.return_value = []
    store.list_user_devices.return_value = []
    store.get_log_records.return_value = {}
    store.list_chats.return_value = []
    store.list_devices.return_value = []
    store.get_user_device_names.return_value = {}
    store.get_last_update_id.return_value = 0
    return store


@pytest.fixture()
def mock_telegram() -> AsyncMock:
    """Create a mock Telegram Bot API client."""
    return AsyncMock(spec=TelegramClient)


@pytest.fixture()
def app(mock_store: AsyncMock, mock_telegram: AsyncMock) -> FastAPI:
    """Build the app with the store and Telegram dependencies overridden."""
    from wattboard.api.deps import get_store, get_telegram
    from wattboard.api.main import create_app

    application = create_app()
    application.dependency_overrides[get_store] = lambda: mock_store
    application.dependency_overrides[get_telegram] = lambda: mock_telegram
    return application


@pytest.fixture()
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a FastAPI TestClient for integration testing.

    Uses a context manager to ensure the application lifespan events
    (startup/shutdown) are properly triggered.

    Yields:
        TestClient: Configured test client for the FastAPI app.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}
