"""
Per-device rollups and multi-device rankings for the home dashboard.

Computes current-month, last-month, and lifetime energy plus the average
power factor for each device, then ranks devices by each scalar and shapes
pie-chart distributions that fold the long tail into an "Others" slice.

Calendar months are taken from an explicit ``as_of`` instant.

CHANGELOG:
- 2026-10-09: Add build_dashboard aggregate (STORY-106)
- 2026-10-09: Initial creation (STORY-106)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime

from wattboard.core.averager import consumption_delta, sort_readings
from wattboard.core.models import (
    DashboardSummary,
    Device,
    DeviceEnergyStats,
    PieSlice,
    RankingItem,
    RankingMetric,
    Reading,
)

logger = logging.getLogger(__name__)

__all__ = [
    "OTHERS_LABEL",
    "average_power_factor",
    "build_dashboard",
    "current_month_energy",
    "device_stats",
    "last_month_energy",
    "latest_reading",
    "pie_distribution",
    "rank_devices",
    "total_energy",
]

OTHERS_LABEL = "Others"
DEFAULT_MAX_SLICES = 6

# Metrics drawn as pie charts; power factor is ranked but not distributed.
_DISTRIBUTED_METRICS = (
    RankingMetric.CURRENT_MONTH,
    RankingMetric.LAST_MONTH,
    RankingMetric.TOTAL,
)


def _month_energy(readings: Sequence[Reading], year: int, month: int) -> float:
    in_month = [
        r for r in sort_readings(readings)
        if r.instant.year == year and r.instant.month == month
    ]
    if not in_month:
        return 0.0
    return consumption_delta(in_month[0], in_month[-1])


def current_month_energy(readings: Sequence[Reading], as_of: datetime) -> float:
    """Energy consumed in the calendar month containing *as_of*."""
    return _month_energy(readings, as_of.year, as_of.month)


def last_month_energy(readings: Sequence[Reading], as_of: datetime) -> float:
    """Energy consumed in the calendar month before *as_of*'s month.

    January wraps to December of the previous year.
    """
    if as_of.month == 1:
        return _month_energy(readings, as_of.year - 1, 12)
    return _month_energy(readings, as_of.year, as_of.month - 1)


def latest_reading(readings: Sequence[Reading]) -> Reading | None:
    """Chronologically last reading, or None when there are none."""
    if not readings:
        return None
    return sort_readings(readings)[-1]


def total_energy(readings: Sequence[Reading]) -> float:
    """Lifetime counter value of the chronologically last reading."""
    latest = latest_reading(readings)
    return latest.energy if latest is not None else 0.0


def average_power_factor(readings: Sequence[Reading]) -> float:
    """Simple mean of the power factor over all readings (0.0 when empty)."""
    if not readings:
        return 0.0
    return sum(r.power_factor for r in readings) / len(readings)


def device_stats(readings: Sequence[Reading], as_of: datetime) -> DeviceEnergyStats:
    """Compute every dashboard scalar for one device."""
    latest = latest_reading(readings)
    return DeviceEnergyStats(
        current_month=current_month_energy(readings, as_of),
        last_month=last_month_energy(readings, as_of),
        total=total_energy(readings),
        average_power_factor=average_power_factor(readings),
        latest_power=latest.power if latest else 0.0,
        latest_voltage=latest.voltage if latest else 0.0,
        latest_current=latest.current if latest else 0.0,
    )


def _metric_value(stats: DeviceEnergyStats, metric: RankingMetric) -> float:
    return getattr(stats, RankingMetric(metric).value)


def rank_devices(
    devices: Sequence[Device],
    stats_by_device: Mapping[str, DeviceEnergyStats],
    metric: RankingMetric,
) -> list[RankingItem]:
    """Rank devices by one scalar, largest first.

    Devices whose value is not positive (including devices with no stats)
    are left out. Ties keep the order of *devices*.
    """
    items = [
        RankingItem(
            device_id=device.id,
            device_name=device.name,
            value=_metric_value(stats_by_device.get(device.id, DeviceEnergyStats()), metric),
        )
        for device in devices
    ]
    ranked = [item for item in items if item.value > 0]
    ranked.sort(key=lambda item: item.value, reverse=True)
    return ranked


def pie_distribution(
    items: Sequence[RankingItem],
    max_slices: int = DEFAULT_MAX_SLICES,
) -> list[PieSlice]:
    """Shape ranked items into pie slices.

    Keeps the first ``max_slices - 1`` items and folds the rest into one
    "Others" slice whose value is their sum. With ``max_slices - 1`` or fewer
    items every item gets its own slice.

    Args:
        items: Items already ranked descending.
        max_slices: Maximum number of slices including "Others".
    """
    if max_slices < 2:
        raise ValueError("max_slices must be >= 2")

    slices = [PieSlice(name=i.device_name, value=i.value, device_id=i.device_id) for i in items]
    if len(slices) <= max_slices - 1:
        return slices

    head, tail = slices[: max_slices - 1], slices[max_slices - 1 :]
    head.append(PieSlice(name=OTHERS_LABEL, value=sum(s.value for s in tail)))
    return head


def build_dashboard(
    devices: Sequence[Device],
    readings_by_device: Mapping[str, Sequence[Reading]],
    as_of: datetime,
) -> DashboardSummary:
    """Compute stats, rankings and distributions for a set of devices.

    Args:
        devices: The user's devices, in display order.
        readings_by_device: Snapshot per device id; missing ids count as empty.
        as_of: Anchor for the calendar-month scalars.
    """
    stats = {
        device.id: device_stats(readings_by_device.get(device.id, ()), as_of)
        for device in devices
    }
    rankings = {metric: rank_devices(devices, stats, metric) for metric in RankingMetric}
    distributions = {
        metric: pie_distribution(rankings[metric]) for metric in _DISTRIBUTED_METRICS
    }
    logger.debug(
        "Dashboard built for %d device(s) as of %s", len(devices), as_of.isoformat()
    )
    return DashboardSummary(stats=stats, rankings=rankings, distributions=distributions)
