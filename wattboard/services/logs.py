"""
Device event logs: parsing, filtering and context windows.

Log records live under ``logs/{device_id}/{id}`` as ``{title, content}``,
keyed by the same identifier format as readings, so the event time is decoded
from the key.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-111)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel

from wattboard.core.timestamps import parse_instant

logger = logging.getLogger(__name__)

__all__ = ["LogContext", "LogEntry", "filter_logs", "log_context", "parse_log_records"]

DEFAULT_CONTEXT_WINDOW = 5


class LogEntry(BaseModel):
    """One device event, e.g. ``Event: Reboot (Exception/Panic)``."""

    id: str
    title: str
    content: str = ""
    timestamp: datetime
    device_id: str


class LogContext(BaseModel):
    """A log entry with the entries immediately around it, oldest first."""

    before: list[LogEntry]
    target: LogEntry
    after: list[LogEntry]


def parse_log_records(device_id: str, records: Mapping[str, Any]) -> list[LogEntry]:
    """Turn raw log records into entries, oldest first.

    Records that are not objects or lack a title are skipped.

    Raises:
        MalformedIdentifier: If a record key cannot be decoded.
    """
    entries = []
    for log_id, record in records.items():
        timestamp = parse_instant(log_id)
        if not isinstance(record, Mapping) or not record.get("title"):
            logger.warning("Skipping malformed log record %s/%s", device_id, log_id)
            continue
        entries.append(
            LogEntry(
                id=log_id,
                title=str(record["title"]),
                content=str(record.get("content") or ""),
                timestamp=timestamp,
                device_id=device_id,
            )
        )
    entries.sort(key=lambda e: (e.timestamp, e.id))
    return entries


def filter_logs(
    entries: Sequence[LogEntry],
    start: date | None = None,
    end: date | None = None,
    search: str | None = None,
) -> list[LogEntry]:
    """Select log entries for display, newest first.

    Args:
        entries: Entries in any order.
        start: First calendar day to include.
        end: Last calendar day to include.
        search: Case-insensitive substring matched against title and content.
            Blank strings match everything.
    """
    query = search.strip().lower() if search else ""
    selected = [
        e for e in entries
        if (start is None or e.timestamp.date() >= start)
        and (end is None or e.timestamp.date() <= end)
        and (not query or query in e.title.lower() or query in e.content.lower())
    ]
    selected.sort(key=lambda e: (e.timestamp, e.id), reverse=True)
    return selected


def log_context(
    entries: Sequence[LogEntry],
    log_id: str,
    window: int = DEFAULT_CONTEXT_WINDOW,
) -> LogContext | None:
    """Return the entry *log_id* with up to *window* neighbours on each side.

    Returns:
        LogContext, or None if *log_id* is not among *entries*.
    """
    ordered = sorted(entries, key=lambda e: (e.timestamp, e.id))
    for index, entry in enumerate(ordered):
        if entry.id == log_id:
            return LogContext(
                before=ordered[max(0, index - window) : index],
                target=entry,
                after=ordered[index + 1 : index + 1 + window],
            )
    return None
