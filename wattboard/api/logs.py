"""
Device event log endpoints.

GET /v1/devices/{device_id}/logs lists the newest log entries, filtered by
an inclusive date range and a case-insensitive search string.
GET /v1/devices/{device_id}/logs/{log_id} returns one entry together with the
entries around it.

CHANGELOG:
- 2026-10-16: Push the day range into the store query (STORY-112)
- 2026-10-12: Initial creation (STORY-111)

TODO:
- None
"""

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from wattboard.api.deps import Store
from wattboard.services.logs import (
    DEFAULT_CONTEXT_WINDOW,
    LogContext,
    LogEntry,
    filter_logs,
    log_context,
    parse_log_records,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["logs"])

MAX_LOGS = 100


@router.get("/devices/{device_id}/logs", response_model=list[LogEntry])
async def list_logs(
    device_id: str,
    store: Store,
    start: Annotated[date | None, Query(description="First day to include.")] = None,
    end: Annotated[date | None, Query(description="Last day to include.")] = None,
    q: Annotated[str | None, Query(description="Search in title and content.")] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_LOGS)] = MAX_LOGS,
) -> list[LogEntry]:
    """Return filtered log entries, newest first.

    Raises:
        HTTPException: 422 if ``start`` is after ``end``.
    """
    if start is not None and end is not None and start > end:
        raise HTTPException(status_code=422, detail="start must not be after end.")

    records = await store.get_log_records(device_id, limit=limit, start=start, end=end)
    entries = parse_log_records(device_id, records)
    return filter_logs(entries, start=start, end=end, search=q)


@router.get("/devices/{device_id}/logs/{log_id}", response_model=LogContext)
async def get_log(
    device_id: str,
    log_id: str,
    store: Store,
    window: Annotated[int, Query(ge=0, le=20)] = DEFAULT_CONTEXT_WINDOW,
) -> LogContext:
    """Return one log entry with up to ``window`` neighbours on each side.

    Raises:
        HTTPException: 404 if the entry does not exist.
    """
    records = await store.get_log_records(device_id, limit=MAX_LOGS)
    context = log_context(parse_log_records(device_id, records), log_id, window)
    if context is None:
        raise HTTPException(status_code=404, detail=f"Log '{log_id}' not found.")
    return context
