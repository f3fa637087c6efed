"""
Typed data model for the aggregation core.

Defines the immutable Reading sample (validated at the store boundary), the
Resolution enum that governs bucket count and anchoring, and the frozen
output types produced by the bucketing, rollup, and chart modules.

Readings are pydantic models so that loosely shaped store records can be
validated into them; everything the core produces is a frozen dataclass
because it never crosses a validation boundary.

CHANGELOG:
- 2026-10-09: Add PieSlice and DashboardSummary for the home dashboard (STORY-106)
- 2026-10-07: Add AggregatedSeries.points union for raw line charts (STORY-104)
- 2026-10-05: Initial creation (STORY-101)

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

from wattboard.core.timestamps import Resolution, parse_instant

__all__ = [
    "AggregatedSeries",
    "AveragedMetrics",
    "Bucket",
    "ChartDataPoint",
    "DashboardSummary",
    "Device",
    "DeviceEnergyStats",
    "PieSlice",
    "RankingItem",
    "RankingMetric",
    "Reading",
    "Resolution",
]


class Reading(BaseModel):
    """A single immutable electrical sample from a monitored device.

    The capture instant is encoded in ``id`` (see
    :func:`wattboard.core.timestamps.parse_instant`); there is no separate
    timestamp field.

    Attributes:
        id: Identifier string encoding the capture instant.
        voltage: RMS voltage in volts.
        current: RMS current in amperes.
        frequency: Mains frequency in hertz.
        power_factor: Power factor, clamped into [0.0, 1.0].
        power: Active power in watts, stored as captured (never recomputed).
        energy: Lifetime energy counter in kWh. Monotonically
            non-decreasing for a given device.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str
    voltage: float
    current: float
    frequency: float
    power_factor: float
    power: float
    energy: float

    @field_validator("power_factor")
    @classmethod
    def clamp_power_factor(cls, v: float) -> float:
        """Clamp the power factor into its physical domain [0, 1]."""
        return min(max(v, 0.0), 1.0)

    @property
    def instant(self) -> datetime:
        """Capture instant decoded from the identifier."""
        return parse_instant(self.id)


@dataclass(frozen=True)
class AveragedMetrics:
    """Per-group metric values.

    Instantaneous metrics are arithmetic means; ``energy`` is a clamped
    consumption delta, not a mean of the lifetime counter.
    """

    voltage: float = 0.0
    current: float = 0.0
    frequency: float = 0.0
    power: float = 0.0
    power_factor: float = 0.0
    energy: float = 0.0


@dataclass(frozen=True)
class Bucket:
    """A fixed time span ``[start, end)`` and the readings that fall in it.

    Attributes:
        start: Inclusive lower boundary.
        end: Exclusive upper boundary.
        label: Short chart label for the bucket.
        metrics: Averaged metrics, or the gap-fill estimate when empty.
        readings: Readings assigned to the bucket, ascending by instant.
        estimated: True when ``metrics`` is a gap-fill estimate.
    """

    start: datetime
    end: datetime
    label: str
    metrics: AveragedMetrics
    readings: tuple[Reading, ...] = ()
    estimated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.readings

    @property
    def source_id(self) -> str:
        """Identifier of the first reading, or ``""`` for an empty bucket."""
        return self.readings[0].id if self.readings else ""


@dataclass(frozen=True)
class AggregatedSeries:
    """Chronologically ordered chart series tagged with its resolution.

    ``points`` holds buckets, or raw readings when the resolution is drawn
    without aggregation.
    """

    resolution: Resolution
    points: tuple[Bucket | Reading, ...] = ()

    def __len__(self) -> int:
        return len(self.points)

    @property
    def buckets(self) -> tuple[Bucket, ...]:
        return tuple(p for p in self.points if isinstance(p, Bucket))


@dataclass(frozen=True)
class ChartDataPoint:
    """A labeled point ready for a charting surface.

    ``source_id`` is empty for gap-filled points so the presentation layer
    can suppress tooltips on estimated data.
    """

    label: str
    voltage: float
    current: float
    frequency: float
    power: float
    power_factor: float
    energy: float
    source_id: str


class Device(BaseModel):
    """A monitored device as stored in the external realtime database.

    Attributes:
        id: Device identifier (the store key).
        name: Display name (a user's custom name where one applies).
        is_on: Power state.
        energy_limit: Alert threshold in kWh; 0 disables alerting.
        user_ids: Owning user identifiers.
        last_updated: Opaque last-update marker from the device firmware.
    """

    id: str
    name: str = ""
    is_on: bool = False
    energy_limit: float = 0.0
    user_ids: list[str] = []
    last_updated: str | int | float | None = None

    @field_validator("energy_limit")
    @classmethod
    def energy_limit_must_be_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("energy_limit must be >= 0")
        return v


@dataclass(frozen=True)
class DeviceEnergyStats:
    """Scalar rollups for one device, as shown on the home dashboard."""

    current_month: float = 0.0
    last_month: float = 0.0
    total: float = 0.0
    average_power_factor: float = 0.0
    latest_power: float = 0.0
    latest_voltage: float = 0.0
    latest_current: float = 0.0


class RankingMetric(str, Enum):
    """Scalars devices can be ranked by."""

    CURRENT_MONTH = "current_month"
    LAST_MONTH = "last_month"
    TOTAL = "total"
    POWER_FACTOR = "average_power_factor"


@dataclass(frozen=True)
class RankingItem:
    device_id: str
    device_name: str
    value: float


@dataclass(frozen=True)
class PieSlice:
    """One slice of a distribution chart; ``device_id`` is None for Others."""

    name: str
    value: float
    device_id: str | None = None


@dataclass(frozen=True)
class DashboardSummary:
    """Home dashboard payload: per-metric rankings and pie distributions."""

    stats: dict[str, DeviceEnergyStats] = field(default_factory=dict)
    rankings: dict[RankingMetric, list[RankingItem]] = field(default_factory=dict)
    distributions: dict[RankingMetric, list[PieSlice]] = field(default_factory=dict)
