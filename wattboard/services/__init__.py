"""
Services built on the store: alerting, chat discovery, logs and Telegram.

CHANGELOG:
- 2026-10-12: Export log helpers (STORY-111)
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

from wattboard.services.alerts import AlertReport, check_energy_limits
from wattboard.services.discovery import DiscoveryReport, discover_chats
from wattboard.services.logs import LogContext, LogEntry, filter_logs, log_context, parse_log_records
from wattboard.services.telegram import TelegramClient, TelegramError

__all__ = [
    "AlertReport",
    "DiscoveryReport",
    "LogContext",
    "LogEntry",
    "TelegramClient",
    "TelegramError",
    "check_energy_limits",
    "discover_chats",
    "filter_logs",
    "log_context",
    "parse_log_records",
]
