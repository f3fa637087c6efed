"""
Telegram chat discovery, triggered by the discovery cron endpoint.

Polls the Bot API for messages sent since the last processed update,
registers every private chat that wrote to the bot, welcomes it, and stores
the highest update id seen so the next run starts after it.

CHANGELOG:
- 2026-10-16: Skip malformed chat updates instead of aborting the run (STORY-112)
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

import logging
import time

from pydantic import BaseModel, ValidationError

from wattboard.services.telegram import TelegramClient, TelegramError
from wattboard.store.client import RealtimeStore, StoreError
from wattboard.store.records import TelegramChat

logger = logging.getLogger(__name__)

__all__ = ["DiscoveryReport", "discover_chats"]

DEFAULT_POLL_TIMEOUT_S = 30


class DiscoveryReport(BaseModel):
    """Outcome of one discovery run."""

    success: bool = True
    message: str
    new_chats: int = 0
    last_update_id: int = 0


def _now_ms() -> int:
    return int(time.time() * 1000)


async def discover_chats(
    store: RealtimeStore,
    telegram: TelegramClient,
    poll_timeout_s: int = DEFAULT_POLL_TIMEOUT_S,
) -> DiscoveryReport:
    """Register the private chats that messaged the bot since the last run.

    A chat that fails to register, or whose update is malformed, is logged and
    skipped; its update still counts as processed.

    Raises:
        StoreError: If the stored update id cannot be read or written.
        TelegramError: If ``getUpdates`` fails.
    """
    last_update_id = await store.get_last_update_id()
    offset = last_update_id + 1 if last_update_id > 0 else None

    updates = await telegram.get_updates(offset=offset, timeout=poll_timeout_s)
    if not updates:
        return DiscoveryReport(message="No updates available", last_update_id=last_update_id)

    known = {chat.chat_id: chat for chat in await store.list_chats()}
    latest_update_id = last_update_id
    new_chats = 0

    for update in updates:
        latest_update_id = max(latest_update_id, int(update.get("update_id", 0)))

        chat = (update.get("message") or {}).get("chat") or {}
        if chat.get("type") != "private":
            continue

        now = _now_ms()
        try:
            chat_id = chat["id"]
            previous = known.get(chat_id)
            record = TelegramChat(
                chat_id=chat_id,
                username=chat.get("username"),
                first_name=chat.get("first_name"),
                last_active=now,
                added_at=previous.added_at if previous else now,
            )
            await store.save_chat(record)
            await telegram.send_welcome_message(record.chat_id, record.first_name)
        except (KeyError, TypeError, ValidationError):
            logger.warning("Skipping malformed chat in update %s: %r", update.get("update_id"), chat)
            continue
        except (StoreError, TelegramError):
            logger.warning("Failed to register chat %s", chat_id, exc_info=True)
            continue

        known[record.chat_id] = record
        new_chats += 1
        logger.info("Registered chat %s (%s)", record.chat_id, record.username or record.first_name)

    if latest_update_id > last_update_id:
        await store.set_last_update_id(latest_update_id)

    return DiscoveryReport(
        message=f"Processed {len(updates)} updates",
        new_chats=new_chats,
        last_update_id=latest_update_id,
    )
