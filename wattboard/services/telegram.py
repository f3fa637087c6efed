"""
Minimal Telegram Bot API client.

Only the two methods the cron jobs need are wrapped: ``sendMessage`` for
alerts and welcome messages, and ``getUpdates`` for chat discovery. Each
message is a single HTTPS POST; there is no retry or queueing.

CHANGELOG:
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

from __future__ import annotations

import html
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

__all__ = ["TelegramClient", "TelegramError", "format_energy_alert", "format_welcome_message"]


class TelegramError(RuntimeError):
    """Raised when the Bot API cannot be reached or answers ``ok: false``."""


def format_energy_alert(device_name: str, energy: float, limit: float) -> str:
    """HTML body of an energy-limit alert."""
    return (
        "<b>Energy limit exceeded</b>\n\n"
        f"Device: <b>{html.escape(device_name)}</b>\n"
        f"Consumption: {energy:.2f} kWh\n"
        f"Limit: {limit:.2f} kWh\n\n"
        "Please check the device and consider turning it off."
    )


def format_welcome_message(first_name: str | None) -> str:
    name = html.escape(first_name) if first_name else "there"
    return (
        f"Hi {name}! This chat is now registered for energy alerts.\n"
        "You will get a message whenever a device goes over its energy limit."
    )


class TelegramClient:
    """Async client for the Telegram Bot API.

    Args:
        bot_token: Bot token issued by BotFather.
        api_url: Bot API base URL.
        timeout_s: Per-request timeout in seconds.
        client: Optional preconfigured httpx client.
    """

    def __init__(
        self,
        bot_token: str,
        api_url: str = "https://api.telegram.org",
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._api_url = api_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @property
    def configured(self) -> bool:
        return bool(self._bot_token)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, payload: dict[str, Any], timeout: float | None = None) -> Any:
        if not self._bot_token:
            raise TelegramError("TELEGRAM_BOT_TOKEN is not configured")

        url = f"{self._api_url}/bot{self._bot_token}/{method}"
        kwargs: dict[str, Any] = {"json": payload}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self._client.post(url, **kwargs)
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            # The token is part of the URL; never log the exception text.
            logger.warning("Telegram %s failed: %s", method, type(exc).__name__)
            raise TelegramError(f"{method} failed: {type(exc).__name__}") from exc

        if not body.get("ok"):
            description = body.get("description", f"HTTP {response.status_code}")
            logger.warning("Telegram %s rejected: %s", method, description)
            raise TelegramError(f"{method} rejected: {description}")
        return body.get("result")

    async def send_message(self, chat_id: int, text: str, parse_mode: str | None = None) -> None:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        await self._call("sendMessage", payload)

    async def get_updates(self, offset: int | None = None, timeout: int = 0) -> list[dict[str, Any]]:
        """Fetch pending updates.

        Args:
            offset: First update id to return; earlier updates are confirmed.
            timeout: Long-polling timeout in seconds (0 for a short poll).

        Returns:
            list[dict]: Raw update objects, oldest first.
        """
        payload: dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        result = await self._call("getUpdates", payload, timeout=timeout + 10.0)
        return result or []

    async def send_energy_alert(
        self,
        chat_id: int,
        device_name: str,
        energy: float,
        limit: float,
    ) -> None:
        await self.send_message(chat_id, format_energy_alert(device_name, energy, limit), "HTML")

    async def send_welcome_message(self, chat_id: int, first_name: str | None = None) -> None:
        await self.send_message(chat_id, format_welcome_message(first_name))
