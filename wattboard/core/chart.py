"""
Chart data adapter: reshapes aggregated series into labeled data points.

No numeric transformation happens here. Buckets already carry their label
and metrics; raw readings are labeled from their identifier for the series
resolution and pass their values through unchanged.

CHANGELOG:
- 2026-10-09: Initial creation (STORY-107)

TODO:
- None
"""

from __future__ import annotations

from wattboard.core.models import AggregatedSeries, Bucket, ChartDataPoint, Reading
from wattboard.core.timestamps import Resolution, format_label

__all__ = ["to_data_points"]


def _bucket_point(bucket: Bucket) -> ChartDataPoint:
    m = bucket.metrics
    return ChartDataPoint(
        label=bucket.label,
        voltage=m.voltage,
        current=m.current,
        frequency=m.frequency,
        power=m.power,
        power_factor=m.power_factor,
        energy=m.energy,
        source_id="" if bucket.estimated else bucket.source_id,
    )


def _reading_point(reading: Reading, resolution: Resolution) -> ChartDataPoint:
    return ChartDataPoint(
        label=format_label(reading.id, resolution),
        voltage=reading.voltage,
        current=reading.current,
        frequency=reading.frequency,
        power=reading.power,
        power_factor=reading.power_factor,
        energy=reading.energy,
        source_id=reading.id,
    )


def to_data_points(
    series: AggregatedSeries,
    resolution: Resolution | None = None,
) -> list[ChartDataPoint]:
    """Convert a series into chart points, preserving order.

    Args:
        series: Bucketed or raw series.
        resolution: Label resolution for raw readings; defaults to the
            series' own resolution.

    Returns:
        list[ChartDataPoint]: One point per series entry. Gap-filled buckets
        have an empty ``source_id``.
    """
    label_resolution = Resolution(resolution) if resolution is not None else series.resolution
    return [
        _bucket_point(point) if isinstance(point, Bucket) else _reading_point(point, label_resolution)
        for point in series.points
    ]
