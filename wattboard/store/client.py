"""
Async REST client for the external realtime JSON database.

Wraps the database's REST surface (``{base}/{path}.json``) with httpx and
translates nodes into typed models through :mod:`wattboard.store.records`.
The FEED_CONFIG dict maps each chart resolution to the reading node it is
drawn from and how many of the newest samples to load.

Transport failures and non-2xx responses raise StoreError; lookups of devices
that do not exist raise DeviceNotFoundError. MalformedIdentifier from the
record layer is not caught here.

Operations:
- get_readings / get_latest_reading: reading snapshots per device.
- get_device / list_devices / list_user_devices: device metadata.
- add_device / rename_device / remove_device: a user's device list.
- set_energy_limit / set_power_state: device mutations.
- get_log_records: raw device event log records.
- list_chats / save_chat / get_last_update_id / set_last_update_id: Telegram
  alert bookkeeping.

CHANGELOG:
- 2026-10-16: Filter log records by day range in the store query; add InvalidDeviceError (STORY-112)
- 2026-10-12: Add log record access (STORY-111)
- 2026-10-10: Add Telegram chat bookkeeping (STORY-109)
- 2026-10-06: Initial creation (STORY-102)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

import httpx

from wattboard.core.models import Device, Reading
from wattboard.core.timestamps import Precision, Resolution, encode_instant
from wattboard.store.records import (
    TelegramChat,
    parse_chat,
    parse_device,
    parse_reading,
    parse_snapshot,
)

logger = logging.getLogger(__name__)

__all__ = [
    "FEED_CONFIG",
    "DeviceNotFoundError",
    "FeedConfig",
    "InvalidDeviceError",
    "RealtimeStore",
    "StoreError",
]


class StoreError(RuntimeError):
    """Raised when the realtime database cannot be reached or rejects a call."""


class DeviceNotFoundError(LookupError):
    """Raised when a device id does not exist in the store."""

    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        super().__init__(f"Device '{device_id}' not found")


class InvalidDeviceError(StoreError):
    """Raised when a stored device record fails validation."""

    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        super().__init__(f"Device '{device_id}' has an invalid record")


@dataclass(frozen=True)
class FeedConfig:
    """Where a chart resolution reads its samples from.

    Attributes:
        node: Top-level reading node, keyed by device id.
        limit: Number of newest samples to load (``limitToLast``).
    """

    node: str
    limit: int


FEED_CONFIG: dict[Resolution, FeedConfig] = {
    # 15-minute samples: 96 per day.
    Resolution.ROLLING_24H: FeedConfig(node="readings_daily", limit=288),
    Resolution.WEEK: FeedConfig(node="readings_weekly", limit=2016),
    Resolution.MONTH: FeedConfig(node="readings_weekly", limit=8640),
    # One sample per day.
    Resolution.YEAR: FeedConfig(node="readings_yearly", limit=365),
}

LATEST_READING_NODE = "readings_daily"

# Sorts after every identifier sharing a prefix, closing a key range on a day.
_KEY_RANGE_END = "\uf8ff"


def _day_key(day: date) -> str:
    return encode_instant(datetime.combine(day, time()), Precision.DAY)


class RealtimeStore:
    """Client for the realtime database REST API.

    Args:
        base_url: Database URL, e.g. ``https://example.firebaseio.com``.
        auth_token: Optional database secret or ID token, sent as the
            ``auth`` query parameter.
        timeout_s: Per-request timeout in seconds.
        client: Optional preconfigured httpx client (tests inject one with a
            MockTransport). The store closes only clients it created.

    Usage::

        async with RealtimeStore("https://example.firebaseio.com") as store:
            readings = await store.get_readings("dev-1", Resolution.WEEK)
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str = "",
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s, verify=True)

    async def __aenter__(self) -> RealtimeStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        """Issue one REST call and return the decoded JSON body.

        Raises:
            StoreError: On network errors, timeouts, or non-2xx responses.
        """
        query = dict(params or {})
        if self._auth_token:
            query["auth"] = self._auth_token
        url = f"{self._base_url}/{path.strip('/')}.json"

        try:
            response = await self._client.request(
                method,
                url,
                params=query,
                content=json.dumps(body) if body is not None else None,
            )
        except httpx.HTTPError as exc:
            logger.warning("Store %s %s failed: %s", method, path, exc)
            raise StoreError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning("Store %s %s returned HTTP %d", method, path, response.status_code)
            raise StoreError(f"{method} {path} returned HTTP {response.status_code}")

        if not response.content:
            return None
        return response.json()

    async def _get(self, path: str, **params: Any) -> Any:
        return await self._request("GET", path, params=params)

    async def _put(self, path: str, value: Any) -> None:
        await self._request("PUT", path, body=value)

    async def _delete(self, path: str) -> None:
        await self._request("DELETE", path)

    # ------------------------------------------------------------------
    # Readings
    # ------------------------------------------------------------------

    async def get_readings(self, device_id: str, resolution: Resolution) -> list[Reading]:
        """Load the newest samples backing a chart resolution.

        Returns:
            list[Reading]: Valid readings, ascending. Quarantined records are
            dropped (see :func:`wattboard.store.records.parse_snapshot`).
        """
        config = FEED_CONFIG[Resolution(resolution)]
        snapshot = await self._get(
            f"{config.node}/{device_id}",
            orderBy='"$key"',
            limitToLast=config.limit,
        )
        readings = parse_snapshot(snapshot)
        logger.debug(
            "Loaded %d reading(s) for device=%s resolution=%s",
            len(readings),
            device_id,
            Resolution(resolution).value,
        )
        return readings

    async def get_latest_reading(
        self,
        device_id: str,
        node: str = LATEST_READING_NODE,
    ) -> Reading | None:
        """Return the newest valid reading of a device, or None."""
        snapshot = await self._get(f"{node}/{device_id}", orderBy='"$key"', limitToLast=1)
        if not snapshot:
            return None
        identifier, record = next(iter(snapshot.items()))
        return parse_reading(identifier, record)

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    async def get_device(self, device_id: str, custom_name: str | None = None) -> Device:
        """Load one device.

        Raises:
            DeviceNotFoundError: If the device node does not exist.
            InvalidDeviceError: If the stored record fails validation.
        """
        record = await self._get(f"devices/{device_id}")
        if not record:
            raise DeviceNotFoundError(device_id)
        device = parse_device(device_id, record, custom_name)
        if device is None:
            raise InvalidDeviceError(device_id)
        return device

    async def list_devices(self) -> list[Device]:
        """Load every registered device, skipping invalid records."""
        records = await self._get("devices") or {}
        devices = (parse_device(device_id, record) for device_id, record in records.items() if record)
        return [device for device in devices if device is not None]

    async def get_user_device_names(self, user_id: str) -> dict[str, str]:
        """Return the user's device id -> custom name mapping."""
        return await self._get(f"users/{user_id}/devices") or {}

    async def list_user_devices(self, user_id: str) -> list[Device]:
        """Load the user's devices, named with the user's custom names.

        Devices the user lists but that no longer exist, or whose record is
        invalid, are skipped.
        """
        names = await self.get_user_device_names(user_id)
        devices = []
        for device_id, custom_name in names.items():
            try:
                devices.append(await self.get_device(device_id, custom_name))
            except DeviceNotFoundError:
                logger.warning("User %s lists unknown device %s", user_id, device_id)
            except InvalidDeviceError:
                logger.warning("User %s lists invalid device %s", user_id, device_id)
        return devices

    async def add_device(self, user_id: str, device_id: str, name: str) -> Device:
        """Attach an existing device to a user under a custom name.

        Raises:
            DeviceNotFoundError: If the device was never registered.
        """
        device = await self.get_device(device_id, name)
        await self._put(f"users/{user_id}/devices/{device_id}", name)
        await self._put(f"devices/{device_id}/user_ids/{user_id}", True)
        logger.info("Attached device %s to user %s", device_id, user_id)
        return device

    async def rename_device(self, user_id: str, device_id: str, name: str) -> None:
        """Change the user's custom name for a device.

        Raises:
            DeviceNotFoundError: If the device is not in the user's list.
        """
        current = await self._get(f"users/{user_id}/devices/{device_id}")
        if current is None:
            raise DeviceNotFoundError(device_id)
        await self._put(f"users/{user_id}/devices/{device_id}", name)

    async def remove_device(self, user_id: str, device_id: str) -> None:
        """Detach a device from a user; the device itself is kept."""
        await self._delete(f"users/{user_id}/devices/{device_id}")
        await self._delete(f"devices/{device_id}/user_ids/{user_id}")
        logger.info("Detached device %s from user %s", device_id, user_id)

    async def set_energy_limit(self, device_id: str, limit: float) -> None:
        """Set the alert threshold in kWh; 0 disables alerting.

        Raises:
            ValueError: If *limit* is negative.
        """
        if limit < 0:
            raise ValueError("energy limit must be >= 0")
        await self._put(f"devices/{device_id}/energyLimit", limit)

    async def set_power_state(self, device_id: str, is_on: bool) -> None:
        await self._put(f"devices/{device_id}/isOn", is_on)

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def get_log_records(
        self,
        device_id: str,
        limit: int = 100,
        start: date | None = None,
        end: date | None = None,
    ) -> dict[str, Any]:
        """Return the newest raw log records of a device, keyed by identifier.

        The day range is applied by the store on the identifier keys before
        ``limitToLast``, so a range older than the newest *limit* records
        still returns its records.

        Args:
            device_id: Device whose log node is read.
            limit: Maximum number of records, counted from the newest.
            start: First calendar day to include.
            end: Last calendar day to include.
        """
        params: dict[str, Any] = {"orderBy": '"$key"'}
        if start is not None:
            params["startAt"] = json.dumps(_day_key(start))
        if end is not None:
            params["endAt"] = json.dumps(_day_key(end) + _KEY_RANGE_END)
        params["limitToLast"] = limit
        return await self._get(f"logs/{device_id}", **params) or {}

    # ------------------------------------------------------------------
    # Telegram bookkeeping
    # ------------------------------------------------------------------

    async def list_chats(self) -> list[TelegramChat]:
        records = await self._get("telegram/chats") or {}
        chats = (parse_chat(record) for record in records.values() if record)
        return [chat for chat in chats if chat is not None]

    async def save_chat(self, chat: TelegramChat) -> None:
        await self._put(
            f"telegram/chats/{chat.chat_id}",
            {
                "chatId": chat.chat_id,
                "username": chat.username,
                "firstName": chat.first_name,
                "lastActive": chat.last_active,
                "addedAt": chat.added_at,
            },
        )

    async def get_last_update_id(self) -> int:
        value = await self._get("telegram/last_update_id")
        return int(value) if value is not None else 0

    async def set_last_update_id(self, update_id: int) -> None:
        await self._put("telegram/last_update_id", update_id)
