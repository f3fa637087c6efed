"""
Bucketing engine: fixed-cardinality time buckets for energy bar charts and
resampled series for metric line charts.

Each resolution maps to a WindowConfig describing how many buckets it has and
how they are anchored:

- ``24h``: 24 hourly buckets ending at the hour of the latest sample (a
  rolling window over the data, not over wall-clock time).
- ``7d``: 7 calendar-day buckets ending on the ``as_of`` day.
- ``1m``: 30 calendar-day buckets ending on the ``as_of`` day.
- ``1y``: 12 calendar-month buckets ending in the ``as_of`` month.

Calendar anchoring takes an explicit ``as_of`` instant so results are
deterministic; the x-axis stays stable even when the data is sparse. Buckets
without readings are gap-filled with zero instantaneous metrics and the
average daily consumption of the whole input as their energy.

CHANGELOG:
- 2026-10-16: Resampled line buckets carry the closing energy counter (STORY-112)
- 2026-10-08: Monthly buckets sum clamped daily deltas (STORY-105)
- 2026-10-08: Gap-fill empty buckets with average daily consumption (STORY-105)
- 2026-10-07: Add resample/line_series for line charts (STORY-104)
- 2026-10-07: Initial creation (STORY-103)

TODO:
- None
"""

from __future__ import annotations

import bisect
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta

from wattboard.core.averager import average, sort_readings, sum_daily_deltas
from wattboard.core.models import AggregatedSeries, AveragedMetrics, Bucket, Reading
from wattboard.core.timestamps import Resolution, bucket_label, format_label

__all__ = [
    "WINDOW_CONFIG",
    "WindowConfig",
    "average_daily_consumption",
    "bucket_boundaries",
    "bucketize",
    "line_series",
    "resample",
]

_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)


@dataclass(frozen=True)
class WindowConfig:
    """Bucket layout for a chart resolution.

    Attributes:
        count: Fixed number of buckets in the output.
        unit: Bucket span: ``hour``, ``day`` or ``month``.
        rolling: True when the window ends at the latest sample rather than
            at the ``as_of`` calendar day/month.
    """

    count: int
    unit: str
    rolling: bool = False


WINDOW_CONFIG: dict[Resolution, WindowConfig] = {
    Resolution.ROLLING_24H: WindowConfig(count=24, unit="hour", rolling=True),
    Resolution.WEEK: WindowConfig(count=7, unit="day"),
    Resolution.MONTH: WindowConfig(count=30, unit="day"),
    Resolution.YEAR: WindowConfig(count=12, unit="month"),
}


# ---------------------------------------------------------------------------
# Boundary helpers
# ---------------------------------------------------------------------------


def _floor_hour(instant: datetime) -> datetime:
    return instant.replace(minute=0, second=0, microsecond=0)


def _floor_day(instant: datetime) -> datetime:
    return datetime.combine(instant.date(), time())


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def bucket_boundaries(
    resolution: Resolution,
    *,
    as_of: datetime,
    latest: datetime | None = None,
) -> list[tuple[datetime, datetime]]:
    """Compute the ``[start, end)`` spans for a resolution, oldest first.

    Args:
        resolution: Chart resolution.
        as_of: Calendar anchor for ``7d``/``1m``/``1y``, and the fallback
            anchor for ``24h`` when there is no data.
        latest: Latest sample instant; anchors the rolling ``24h`` window.

    Returns:
        list[tuple[datetime, datetime]]: Exactly ``WINDOW_CONFIG[resolution].count``
        contiguous spans.
    """
    config = WINDOW_CONFIG[Resolution(resolution)]

    if config.unit == "hour":
        last_start = _floor_hour(latest if latest is not None else as_of)
        return [
            (last_start - _HOUR * offset, last_start - _HOUR * (offset - 1))
            for offset in range(config.count - 1, -1, -1)
        ]

    if config.unit == "day":
        last_start = _floor_day(as_of)
        return [
            (last_start - _DAY * offset, last_start - _DAY * (offset - 1))
            for offset in range(config.count - 1, -1, -1)
        ]

    spans: list[tuple[datetime, datetime]] = []
    for offset in range(config.count - 1, -1, -1):
        start = _month_start(*_shift_month(as_of.year, as_of.month, -offset))
        end = _month_start(*_shift_month(start.year, start.month, 1))
        spans.append((start, end))
    return spans


# ---------------------------------------------------------------------------
# Gap-fill estimate
# ---------------------------------------------------------------------------


def average_daily_consumption(readings: Iterable[Reading]) -> float:
    """Average positive per-day consumption across every day in the input.

    A day's delta is its closing counter minus the previous calendar day's
    closing counter when that day is present, otherwise its own closing minus
    opening counter. Days with a non-positive delta are ignored.

    Returns:
        float: Sum of positive day deltas over their count; 0.0 if none.
    """
    days: dict[date, list[Reading]] = {}
    for reading in sort_readings(readings):
        days.setdefault(reading.instant.date(), []).append(reading)

    deltas: list[float] = []
    for day, group in days.items():
        previous = days.get(day - _DAY)
        if previous is not None:
            delta = group[-1].energy - previous[-1].energy
        else:
            delta = group[-1].energy - group[0].energy
        if delta > 0:
            deltas.append(delta)

    return sum(deltas) / len(deltas) if deltas else 0.0


# ---------------------------------------------------------------------------
# Fixed-cardinality bucketing
# ---------------------------------------------------------------------------


def _assign(
    ordered: Sequence[Reading],
    spans: Sequence[tuple[datetime, datetime]],
) -> list[list[Reading]]:
    """Distribute ordered readings into the half-open spans they fall in."""
    starts = [start for start, _ in spans]
    groups: list[list[Reading]] = [[] for _ in spans]
    for reading in ordered:
        instant = reading.instant
        idx = bisect.bisect_right(starts, instant) - 1
        if idx >= 0 and instant < spans[idx][1]:
            groups[idx].append(reading)
    return groups


def bucketize(
    readings: Iterable[Reading],
    resolution: Resolution,
    *,
    as_of: datetime,
) -> AggregatedSeries:
    """Partition a reading stream into the fixed buckets of *resolution*.

    Args:
        readings: Readings of a single device, in any order. Not mutated.
        resolution: ``24h``, ``7d``, ``1m`` or ``1y``.
        as_of: Explicit "now" used for calendar anchoring.

    Returns:
        AggregatedSeries: Exactly 24/7/30/12 buckets, ascending.

    Raises:
        MalformedIdentifier: If any reading identifier cannot be decoded.
    """
    resolution = Resolution(resolution)
    ordered = sort_readings(readings)
    latest = ordered[-1].instant if ordered else None

    spans = bucket_boundaries(resolution, as_of=as_of, latest=latest)
    groups = _assign(ordered, spans)
    fill_energy = average_daily_consumption(ordered)

    buckets: list[Bucket] = []
    for (start, end), group in zip(spans, groups):
        label = bucket_label(start, resolution)
        if not group:
            buckets.append(
                Bucket(
                    start=start,
                    end=end,
                    label=label,
                    metrics=AveragedMetrics(energy=fill_energy),
                    estimated=True,
                )
            )
            continue

        metrics = average(group)
        if resolution is Resolution.YEAR:
            metrics = replace(metrics, energy=sum_daily_deltas(group))
        buckets.append(
            Bucket(
                start=start,
                end=end,
                label=label,
                metrics=metrics,
                readings=tuple(group),
            )
        )

    return AggregatedSeries(resolution=resolution, points=tuple(buckets))


# ---------------------------------------------------------------------------
# Line-chart resampling
# ---------------------------------------------------------------------------

_RESAMPLE_UNITS: dict[str, tuple[Callable[[datetime], datetime], timedelta, Resolution]] = {
    "hour": (_floor_hour, _HOUR, Resolution.WEEK),
    "day": (_floor_day, _DAY, Resolution.MONTH),
}


def resample(readings: Iterable[Reading], unit: str) -> list[Bucket]:
    """Average readings per calendar hour or day.

    Only hours/days that contain readings are returned; there is no gap
    filling here. Each bucket is labeled from its first reading. Its energy
    is the lifetime counter of its last reading, the same quantity raw line
    points carry, so line charts plot one meaning of energy at every range.

    Args:
        readings: Readings in any order.
        unit: ``"hour"`` or ``"day"``.

    Raises:
        ValueError: If *unit* is not supported.
    """
    try:
        floor, step, label_resolution = _RESAMPLE_UNITS[unit]
    except KeyError:
        raise ValueError(f"Unsupported resample unit {unit!r}") from None

    groups: dict[datetime, list[Reading]] = {}
    for reading in sort_readings(readings):
        groups.setdefault(floor(reading.instant), []).append(reading)

    return [
        Bucket(
            start=start,
            end=start + step,
            label=format_label(group[0].id, label_resolution),
            metrics=replace(average(group), energy=group[-1].energy),
            readings=tuple(group),
        )
        for start, group in groups.items()
    ]


def line_series(readings: Iterable[Reading], resolution: Resolution) -> AggregatedSeries:
    """Build the series drawn by metric line charts.

    ``24h`` and ``1y`` plot raw readings; ``7d`` plots hourly averages and
    ``1m`` daily averages.
    """
    resolution = Resolution(resolution)
    if resolution is Resolution.WEEK:
        points: tuple[Bucket | Reading, ...] = tuple(resample(readings, "hour"))
    elif resolution is Resolution.MONTH:
        points = tuple(resample(readings, "day"))
    else:
        points = tuple(sort_readings(readings))
    return AggregatedSeries(resolution=resolution, points=points)
