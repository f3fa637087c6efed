"""
Aggregation core: pure functions from reading snapshots to chart data.

Nothing in this package performs I/O, reads the clock, or holds state;
callers pass snapshots by value and an explicit ``as_of`` instant.

CHANGELOG:
- 2026-10-09: Export public API (STORY-107)
- 2026-10-05: Initial creation (STORY-101)

TODO:
- None
"""

from wattboard.core.averager import average, consumption_delta, sum_daily_deltas
from wattboard.core.bucketing import (
    average_daily_consumption,
    bucketize,
    line_series,
    resample,
)
from wattboard.core.chart import to_data_points
from wattboard.core.models import (
    AggregatedSeries,
    AveragedMetrics,
    Bucket,
    ChartDataPoint,
    DashboardSummary,
    Device,
    DeviceEnergyStats,
    PieSlice,
    RankingItem,
    RankingMetric,
    Reading,
)
from wattboard.core.rollup import (
    build_dashboard,
    device_stats,
    pie_distribution,
    rank_devices,
)
from wattboard.core.timestamps import (
    MalformedIdentifier,
    Precision,
    Resolution,
    encode_instant,
    format_full_datetime,
    format_label,
    parse_instant,
)

__all__ = [
    "AggregatedSeries",
    "AveragedMetrics",
    "Bucket",
    "ChartDataPoint",
    "DashboardSummary",
    "Device",
    "DeviceEnergyStats",
    "MalformedIdentifier",
    "PieSlice",
    "Precision",
    "RankingItem",
    "RankingMetric",
    "Reading",
    "Resolution",
    "average",
    "average_daily_consumption",
    "build_dashboard",
    "bucketize",
    "consumption_delta",
    "device_stats",
    "encode_instant",
    "format_full_datetime",
    "format_label",
    "line_series",
    "parse_instant",
    "pie_distribution",
    "rank_devices",
    "resample",
    "sum_daily_deltas",
    "to_data_points",
]
