"""
Chart and dashboard endpoints.

GET /v1/devices/{device_id}/chart returns one chart for a range, either the
gap-filled energy buckets or the resampled metric lines, cached in Redis for
CACHE_TTL_S. GET /v1/devices/{device_id}/chart/stream pushes a fresh energy
chart as server-sent events each time the shared feed publishes a snapshot.
GET /v1/users/{user_id}/dashboard returns per-device stats, rankings and pie
distributions.

CHANGELOG:
- 2026-10-16: End the chart stream with an error event on corrupt identifiers (STORY-112)
- 2026-10-11: Cache charts in Redis (STORY-110)
- 2026-10-09: Add dashboard summary (STORY-106)
- 2026-10-08: Add SSE stream on the subscription cache (STORY-105)
- 2026-10-07: Initial creation (STORY-104)

TODO:
- None
"""

import dataclasses
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime
from enum import Enum
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from wattboard.api.deps import AppSettings, Store, Subscriptions
from wattboard.cache.redis_client import chart_cache_key, get_cached_json, set_cached_json
from wattboard.core import (
    ChartDataPoint,
    DeviceEnergyStats,
    MalformedIdentifier,
    PieSlice,
    RankingItem,
    RankingMetric,
    Reading,
    Resolution,
    build_dashboard,
    bucketize,
    line_series,
    to_data_points,
)
from wattboard.store.client import StoreError
from wattboard.store.subscriptions import FeedKey

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["charts"])

DASHBOARD_RESOLUTION = Resolution.ROLLING_24H


class ChartMetric(str, Enum):
    """Which chart to draw: energy bars or metric lines."""

    ENERGY = "energy"
    LINE = "line"


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class ChartResponse(BaseModel):
    """One chart for a device.

    Attributes:
        device_id: Identifier of the charted device.
        range: Resolution of the chart (24h, 7d, 1m, 1y).
        metric: ``energy`` for fixed gap-filled buckets, ``line`` for the
            variable-length metric series.
        points: Chart points in chronological order.
    """

    device_id: str
    range: Resolution
    metric: ChartMetric
    points: list[ChartDataPoint]


class DashboardResponse(BaseModel):
    """Home dashboard payload for one user."""

    user_id: str
    as_of: datetime
    stats: dict[str, DeviceEnergyStats]
    rankings: dict[RankingMetric, list[RankingItem]]
    distributions: dict[RankingMetric, list[PieSlice]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def render_chart(
    device_id: str,
    readings: list[Reading],
    resolution: Resolution,
    metric: ChartMetric,
    as_of: datetime,
) -> ChartResponse:
    """Run the aggregation pipeline over one snapshot."""
    if metric == ChartMetric.ENERGY:
        series = bucketize(readings, resolution, as_of=as_of)
    else:
        series = line_series(readings, resolution)
    return ChartResponse(
        device_id=device_id,
        range=resolution,
        metric=metric,
        points=to_data_points(series),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/devices/{device_id}/chart", response_model=ChartResponse)
async def get_chart(
    device_id: str,
    settings: AppSettings,
    store: Store,
    resolution: Annotated[
        Resolution,
        Query(alias="range", description="Chart range: 24h, 7d, 1m, or 1y."),
    ] = Resolution.ROLLING_24H,
    metric: Annotated[
        ChartMetric,
        Query(description="energy (bucketed consumption) or line (metric lines)."),
    ] = ChartMetric.ENERGY,
) -> ChartResponse:
    """Return one chart for a device.

    Uses a Redis cache (key ``chart:{device_id}:{range}:{metric}``) with
    CACHE_TTL_S. Falls back to the store on cache miss or Redis failure.

    Raises:
        StoreError: Mapped to 503 by the application.
        MalformedIdentifier: Mapped to 502 by the application.
    """
    cache_key = chart_cache_key(device_id, resolution.value, metric.value)
    cached = await get_cached_json(settings.redis_url, cache_key)
    if cached is not None:
        return ChartResponse.model_validate(cached)

    readings = await store.get_readings(device_id, resolution)
    chart = render_chart(device_id, readings, resolution, metric, settings.local_now())

    logger.debug(
        "Chart: device_id=%s range=%s metric=%s readings=%d points=%d",
        device_id,
        resolution.value,
        metric.value,
        len(readings),
        len(chart.points),
    )

    await set_cached_json(
        settings.redis_url, cache_key, chart.model_dump(mode="json"), settings.cache_ttl_s
    )
    return chart


@router.get("/devices/{device_id}/chart/stream")
async def stream_chart(
    device_id: str,
    request: Request,
    settings: AppSettings,
    subscriptions: Subscriptions,
    resolution: Annotated[Resolution, Query(alias="range")] = Resolution.ROLLING_24H,
) -> StreamingResponse:
    """Stream energy charts as server-sent events.

    Every consumer of the same device and range shares one upstream feed.
    Each published snapshot produces one ``chart`` event. Corrupt identifiers
    in the feed end the stream with one ``error`` event.
    """

    async def events() -> AsyncIterator[str]:
        handle = subscriptions.acquire(FeedKey(device_id, resolution))
        try:
            async for snapshot in handle.updates():
                if await request.is_disconnected():
                    break
                chart = render_chart(
                    device_id, snapshot, resolution, ChartMetric.ENERGY, settings.local_now()
                )
                yield f"event: chart\ndata: {chart.model_dump_json()}\n\n"
        except MalformedIdentifier as exc:
            logger.warning("Chart stream for %s stopped on corrupt identifiers: %s", device_id, exc)
            yield f"event: error\ndata: {json.dumps({'detail': str(exc)})}\n\n"
        finally:
            subscriptions.release(handle)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/users/{user_id}/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    user_id: str,
    settings: AppSettings,
    store: Store,
) -> DashboardResponse:
    """Return stats, rankings and distributions for a user's devices.

    Each device contributes its 24h snapshot. A device whose snapshot cannot
    be loaded counts as having no readings.
    """
    devices = await store.list_user_devices(user_id)

    readings_by_device: dict[str, list[Reading]] = {}
    for device in devices:
        try:
            readings_by_device[device.id] = await store.get_readings(device.id, DASHBOARD_RESOLUTION)
        except StoreError:
            logger.warning("Dashboard: readings unavailable for device %s", device.id, exc_info=True)

    as_of = settings.local_now()
    summary = build_dashboard(devices, readings_by_device, as_of)
    return DashboardResponse(user_id=user_id, as_of=as_of, **dataclasses.asdict(summary))
