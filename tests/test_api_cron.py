"""
Tests for the cron endpoints.

CHANGELOG:
- 2026-10-16: Unexpected failures keep the error body (STORY-112)
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from tests.factories import reading
from wattboard.core.models import Device
from wattboard.services.telegram import TelegramError
from wattboard.store.client import StoreError
from wattboard.store.records import TelegramChat

ALERTS_URL = "/api/cron/energy-alerts"
DISCOVERY_URL = "/api/cron/telegram-discovery"


class TestCronAuth:
    @pytest.mark.parametrize("url", [ALERTS_URL, DISCOVERY_URL])
    def test_missing_token(self, client: TestClient, url: str) -> None:
        assert client.get(url).status_code == 401

    def test_wrong_token(self, client: TestClient) -> None:
        response = client.get(ALERTS_URL, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_unset_secret(self, monkeypatch: pytest.MonkeyPatch, mock_store, mock_telegram) -> None:
        from wattboard.api.deps import get_store, get_telegram
        from wattboard.api.main import create_app
        from wattboard.config import get_settings

        monkeypatch.setenv("CRON_SECRET", "")
        get_settings.cache_clear()
        app = create_app()
        app.dependency_overrides[get_store] = lambda: mock_store
        app.dependency_overrides[get_telegram] = lambda: mock_telegram

        with TestClient(app) as client:
            response = client.get(ALERTS_URL, headers={"Authorization": "Bearer anything"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Server configuration error"}


class TestEnergyAlerts:
    def test_report(
        self,
        client: TestClient,
        cron_headers: dict[str, str],
        mock_store: AsyncMock,
        mock_telegram: AsyncMock,
    ) -> None:
        mock_store.list_chats.return_value = [TelegramChat(chat_id=1)]
        mock_store.list_devices.return_value = [Device(id="d", name="Heater", energy_limit=1.0)]
        mock_store.get_latest_reading.return_value = reading(datetime(2025, 10, 30, 7), 3.0)

        response = client.get(ALERTS_URL, headers=cron_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["devices_checked"] == 1
        assert body["alerts_sent"] == 1
        assert body["active_chat_ids"] == 1
        mock_telegram.send_energy_alert.assert_awaited_once()

    def test_store_failure(self, client: TestClient, cron_headers: dict[str, str], mock_store: AsyncMock) -> None:
        mock_store.list_chats.side_effect = StoreError("HTTP 503")

        response = client.get(ALERTS_URL, headers=cron_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "HTTP 503"}

    def test_unexpected_failure_keeps_error_body(
        self, client: TestClient, cron_headers: dict[str, str], mock_store: AsyncMock
    ) -> None:
        mock_store.list_chats.return_value = [TelegramChat(chat_id=1)]
        mock_store.list_devices.side_effect = RuntimeError("boom")

        response = client.get(ALERTS_URL, headers=cron_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "boom"}


class TestTelegramDiscovery:
    def test_report(
        self,
        client: TestClient,
        cron_headers: dict[str, str],
        mock_telegram: AsyncMock,
    ) -> None:
        mock_telegram.get_updates.return_value = [
            {"update_id": 3, "message": {"chat": {"id": 7, "type": "private"}}}
        ]

        response = client.get(DISCOVERY_URL, headers=cron_headers)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Processed 1 updates",
            "new_chats": 1,
            "last_update_id": 3,
        }

    def test_telegram_failure(
        self,
        client: TestClient,
        cron_headers: dict[str, str],
        mock_telegram: AsyncMock,
    ) -> None:
        mock_telegram.get_updates.side_effect = TelegramError("getUpdates failed: ConnectError")

        response = client.get(DISCOVERY_URL, headers=cron_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"

    def test_unexpected_failure_keeps_error_body(
        self,
        client: TestClient,
        cron_headers: dict[str, str],
        mock_store: AsyncMock,
        mock_telegram: AsyncMock,
    ) -> None:
        mock_telegram.get_updates.return_value = [
            {"update_id": 3, "message": {"chat": {"id": 7, "type": "private"}}}
        ]
        mock_store.list_chats.side_effect = RuntimeError("boom")

        response = client.get(DISCOVERY_URL, headers=cron_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "boom"}
