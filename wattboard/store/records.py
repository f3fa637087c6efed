"""
Validation of raw store records into typed models.

The realtime database hands back loosely shaped JSON: reading records keyed
by their identifier, device records with camelCase fields, and Telegram chat
records. This module is the single place where that JSON becomes a Reading,
Device or TelegramChat.

Reading records with a missing, non-numeric or non-finite required field are
quarantined: logged and skipped, so a single bad sample can never put NaN
into an average. Device records that fail validation are quarantined
the same way. A malformed identifier is different: it means the upstream
key space is corrupt, so MalformedIdentifier propagates to the caller.

This is a pure module: no I/O, no clock.

CHANGELOG:
- 2026-10-16: Quarantine invalid device records (STORY-112)
- 2026-10-10: Add TelegramChat parsing (STORY-109)
- 2026-10-06: Initial creation (STORY-102)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from wattboard.core.averager import sort_readings
from wattboard.core.models import Device, Reading
from wattboard.core.timestamps import parse_instant

logger = logging.getLogger(__name__)

__all__ = [
    "READING_FIELDS",
    "TelegramChat",
    "parse_chat",
    "parse_device",
    "parse_reading",
    "parse_snapshot",
]

READING_FIELDS: tuple[str, ...] = (
    "voltage",
    "current",
    "frequency",
    "power_factor",
    "power",
    "energy",
)
"""Numeric fields every reading record must carry."""


class TelegramChat(BaseModel):
    """A Telegram chat registered to receive energy alerts.

    Attributes:
        chat_id: Telegram chat identifier.
        username: Telegram @username, when the user has one.
        first_name: First name shown by Telegram.
        last_active: Unix epoch milliseconds of the last message seen.
        added_at: Unix epoch milliseconds of the first registration.
    """

    chat_id: int
    username: str | None = None
    first_name: str | None = None
    last_active: int = 0
    added_at: int = 0


# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------


def parse_reading(identifier: str, record: Any) -> Reading | None:
    """Validate one reading record.

    Args:
        identifier: The record key, encoding the capture instant.
        record: The raw record value from the store.

    Returns:
        Reading on success, or None if the record was quarantined.

    Raises:
        MalformedIdentifier: If *identifier* cannot be decoded.
    """
    parse_instant(identifier)

    if not isinstance(record, Mapping):
        logger.warning("Reading '%s': expected an object, got %s", identifier, type(record).__name__)
        return None

    missing = [name for name in READING_FIELDS if record.get(name) is None]
    if missing:
        logger.warning("Reading '%s': missing fields %s", identifier, missing)
        return None

    try:
        return Reading.model_validate(
            {"id": identifier, **{name: record[name] for name in READING_FIELDS}}
        )
    except ValidationError as exc:
        logger.warning(
            "Reading '%s': rejected (%d invalid field(s): %s)",
            identifier,
            exc.error_count(),
            ", ".join(str(err["loc"][0]) for err in exc.errors()),
        )
        return None


def parse_snapshot(snapshot: Mapping[str, Any] | None) -> list[Reading]:
    """Validate a keyed snapshot of reading records.

    Args:
        snapshot: Mapping of identifier -> record, or None for an empty node.

    Returns:
        list[Reading]: Valid readings, ascending by capture instant.

    Raises:
        MalformedIdentifier: If any key cannot be decoded.
    """
    if not snapshot:
        return []

    readings = []
    for identifier, record in snapshot.items():
        reading = parse_reading(str(identifier), record)
        if reading is not None:
            readings.append(reading)

    quarantined = len(snapshot) - len(readings)
    if quarantined:
        logger.warning("Quarantined %d/%d reading record(s)", quarantined, len(snapshot))
    return sort_readings(readings)


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


def parse_device(
    device_id: str,
    record: Mapping[str, Any],
    custom_name: str | None = None,
) -> Device | None:
    """Build a Device from its store record, or None if invalid.

    An invalid record, such as a negative ``energyLimit``, is logged and
    quarantined like a bad reading.

    Args:
        device_id: The device key.
        record: Raw ``devices/{device_id}`` object.
        custom_name: The requesting user's name for the device, which takes
            precedence over the stored name.
    """
    user_ids = record.get("user_ids") or {}
    try:
        return Device(
            id=device_id,
            name=custom_name or record.get("name") or device_id,
            is_on=bool(record.get("isOn", False)),
            energy_limit=record.get("energyLimit") or 0.0,
            user_ids=[uid for uid, owned in user_ids.items() if owned],
            last_updated=record.get("last_updated"),
        )
    except ValidationError as exc:
        logger.warning(
            "Device '%s': rejected (%d invalid field(s): %s)",
            device_id,
            exc.error_count(),
            ", ".join(str(err["loc"][0]) for err in exc.errors()),
        )
        return None


# ---------------------------------------------------------------------------
# Telegram chats
# ---------------------------------------------------------------------------


def parse_chat(record: Mapping[str, Any]) -> TelegramChat | None:
    """Build a TelegramChat from its camelCase store record, or None if invalid."""
    try:
        return TelegramChat(
            chat_id=record["chatId"],
            username=record.get("username"),
            first_name=record.get("firstName"),
            last_active=record.get("lastActive") or 0,
            added_at=record.get("addedAt") or 0,
        )
    except (KeyError, ValidationError):
        logger.warning("Skipping malformed Telegram chat record: %r", record)
        return None
