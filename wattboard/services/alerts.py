"""
Energy-limit alert run, triggered by the alerts cron endpoint.

For every device with a positive energy limit, compares the lifetime energy
counter of its latest ``readings_daily`` sample against the limit and
broadcasts an alert to every registered Telegram chat when it is exceeded.
Failures for one device or one chat are collected into the report and never
abort the run.

CHANGELOG:
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

import logging

from pydantic import BaseModel

from wattboard.core.models import Device
from wattboard.services.telegram import TelegramClient, TelegramError
from wattboard.store.client import RealtimeStore, StoreError

logger = logging.getLogger(__name__)

__all__ = ["AlertReport", "check_energy_limits", "resolve_display_name"]


class AlertReport(BaseModel):
    """Outcome of one alert run, returned verbatim by the cron endpoint."""

    success: bool = True
    message: str
    devices_checked: int = 0
    alerts_sent: int = 0
    active_chat_ids: int = 0
    errors: list[str] = []


async def resolve_display_name(store: RealtimeStore, device: Device) -> str:
    """Name to show in an alert: the first owner's custom name, else the device name."""
    if device.user_ids:
        names = await store.get_user_device_names(device.user_ids[0])
        custom_name = names.get(device.id)
        if custom_name:
            return custom_name
    return device.name


async def check_energy_limits(store: RealtimeStore, telegram: TelegramClient) -> AlertReport:
    """Run one alert pass over every device.

    Args:
        store: Realtime database client.
        telegram: Bot API client used for the broadcast.

    Returns:
        AlertReport: Counters plus one message per failed device or chat.

    Raises:
        StoreError: If the chat list or the device list cannot be loaded.
    """
    chats = await store.list_chats()
    if not chats:
        logger.info("No active Telegram chats registered; skipping alert run")
        return AlertReport(message="No active Telegram chats registered")

    devices = await store.list_devices()
    if not devices:
        return AlertReport(message="No devices found", active_chat_ids=len(chats))

    report = AlertReport(message="Energy alert check completed", active_chat_ids=len(chats))

    for device in devices:
        report.devices_checked += 1
        if device.energy_limit <= 0:
            continue

        try:
            latest = await store.get_latest_reading(device.id)
            if latest is None:
                logger.info("No readings found for device %s", device.id)
                continue
            if latest.energy <= device.energy_limit:
                continue

            logger.info(
                "Device %s exceeded limit: %.2f kWh > %.2f kWh",
                device.id,
                latest.energy,
                device.energy_limit,
            )
            display_name = await resolve_display_name(store, device)
        except (StoreError, ValueError) as exc:
            message = f"Error processing device {device.id}: {exc}"
            logger.error(message)
            report.errors.append(message)
            continue

        for chat in chats:
            try:
                await telegram.send_energy_alert(
                    chat.chat_id, display_name, latest.energy, device.energy_limit
                )
            except TelegramError as exc:
                message = f"Failed to send alert to chat {chat.chat_id} for device {device.name}: {exc}"
                logger.error(message)
                report.errors.append(message)
            else:
                report.alerts_sent += 1

    logger.info(
        "Alert run checked %d device(s), sent %d alert(s), %d error(s)",
        report.devices_checked,
        report.alerts_sent,
        len(report.errors),
    )
    return report
