"""
Tests for the device management endpoints.

CHANGELOG:
- 2026-10-16: Invalid device records answer 502 (STORY-112)
- 2026-10-11: Assert chart cache invalidation (STORY-110)
- 2026-10-06: Initial creation (STORY-103)
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from wattboard.core.models import Device
from wattboard.store.client import DeviceNotFoundError, InvalidDeviceError

DEVICE = Device(id="dev-1", name="Plug", is_on=True, energy_limit=5.0, user_ids=["u1"])


@pytest.fixture()
def invalidate():
    with patch("wattboard.api.devices.invalidate_device_cache", AsyncMock()) as mocked:
        yield mocked


class TestUserDevices:
    def test_list(self, client: TestClient, mock_store: AsyncMock) -> None:
        mock_store.list_user_devices.return_value = [DEVICE]

        response = client.get("/v1/users/u1/devices")

        assert response.status_code == 200
        assert response.json()[0]["id"] == "dev-1"
        assert response.json()[0]["energy_limit"] == 5.0

    def test_attach(self, client: TestClient, mock_store: AsyncMock) -> None:
        mock_store.add_device.return_value = DEVICE

        response = client.post("/v1/users/u1/devices", json={"device_id": "dev-1", "name": "  Plug "})

        assert response.status_code == 201
        mock_store.add_device.assert_awaited_once_with("u1", "dev-1", "Plug")

    def test_attach_unknown_device(self, client: TestClient, mock_store: AsyncMock) -> None:
        mock_store.add_device.side_effect = DeviceNotFoundError("ghost")

        response = client.post("/v1/users/u1/devices", json={"device_id": "ghost", "name": "Ghost"})

        assert response.status_code == 404
        assert "ghost" in response.json()["detail"]

    def test_attach_requires_name(self, client: TestClient) -> None:
        response = client.post("/v1/users/u1/devices", json={"device_id": "dev-1", "name": ""})
        assert response.status_code == 422

    def test_rename(self, client: TestClient, mock_store: AsyncMock) -> None:
        response = client.patch("/v1/users/u1/devices/dev-1", json={"name": "Fridge"})

        assert response.status_code == 204
        mock_store.rename_device.assert_awaited_once_with("u1", "dev-1", "Fridge")

    def test_detach_invalidates_cache(self, client: TestClient, mock_store: AsyncMock, invalidate) -> None:
        response = client.delete("/v1/users/u1/devices/dev-1")

        assert response.status_code == 204
        mock_store.remove_device.assert_awaited_once_with("u1", "dev-1")
        invalidate.assert_awaited_once_with("", "dev-1")


class TestDeviceSettings:
    def test_set_limit(self, client: TestClient, mock_store: AsyncMock, invalidate) -> None:
        mock_store.get_device.return_value = DEVICE

        response = client.put("/v1/devices/dev-1/limit", json={"energy_limit": 12.5})

        assert response.status_code == 200
        mock_store.set_energy_limit.assert_awaited_once_with("dev-1", 12.5)
        invalidate.assert_awaited_once()

    def test_negative_limit_is_rejected(self, client: TestClient, mock_store: AsyncMock) -> None:
        response = client.put("/v1/devices/dev-1/limit", json={"energy_limit": -1})

        assert response.status_code == 422
        mock_store.set_energy_limit.assert_not_awaited()

    def test_limit_for_unknown_device(self, client: TestClient, mock_store: AsyncMock) -> None:
        mock_store.get_device.side_effect = DeviceNotFoundError("ghost")

        response = client.put("/v1/devices/ghost/limit", json={"energy_limit": 1})

        assert response.status_code == 404
        mock_store.set_energy_limit.assert_not_awaited()

    def test_invalid_device_record_is_bad_gateway(self, client: TestClient, mock_store: AsyncMock) -> None:
        mock_store.get_device.side_effect = InvalidDeviceError("dev-1")

        response = client.put("/v1/devices/dev-1/power", json={"is_on": True})

        assert response.status_code == 502
        assert "invalid record" in response.json()["detail"]

    def test_power_state(self, client: TestClient, mock_store: AsyncMock, invalidate) -> None:
        mock_store.get_device.return_value = DEVICE.model_copy(update={"is_on": False})

        response = client.put("/v1/devices/dev-1/power", json={"is_on": False})

        assert response.status_code == 200
        assert response.json()["is_on"] is False
        mock_store.set_power_state.assert_awaited_once_with("dev-1", False)
