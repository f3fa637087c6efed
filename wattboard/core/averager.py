"""
Metric averaging and consumption deltas over groups of readings.

Instantaneous metrics (voltage, current, frequency, power, power factor) are
averaged arithmetically. Energy is a lifetime counter, so the consumption of
a group is the difference between its last and first reading, clamped to
zero: a counter that moves backwards (rollback or device reset) is
treated as no consumption rather than negative consumption.

All functions are pure and never mutate their arguments.

CHANGELOG:
- 2026-10-08: Add sum_daily_deltas for monthly buckets over daily input (STORY-105)
- 2026-10-06: Initial creation (STORY-102)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from wattboard.core.models import AveragedMetrics, Reading

__all__ = [
    "average",
    "closing_readings",
    "consumption_delta",
    "sort_readings",
    "sum_daily_deltas",
]


def sort_readings(readings: Iterable[Reading]) -> list[Reading]:
    """Return readings ascending by capture instant, ties broken by identifier."""
    return sorted(readings, key=lambda r: (r.instant, r.id))


def consumption_delta(earlier: Reading, later: Reading) -> float:
    """Energy consumed between two readings, never negative."""
    return max(0.0, later.energy - earlier.energy)


def average(readings: Sequence[Reading]) -> AveragedMetrics:
    """Average a non-empty group of readings.

    Args:
        readings: Readings in any order.

    Returns:
        AveragedMetrics: Means of the instantaneous metrics and the clamped
        first-to-last energy delta (first/last by ascending instant).

    Raises:
        ValueError: If *readings* is empty.
    """
    if not readings:
        raise ValueError("cannot average an empty group of readings")

    ordered = sort_readings(readings)
    count = len(ordered)
    return AveragedMetrics(
        voltage=sum(r.voltage for r in ordered) / count,
        current=sum(r.current for r in ordered) / count,
        frequency=sum(r.frequency for r in ordered) / count,
        power=sum(r.power for r in ordered) / count,
        power_factor=sum(r.power_factor for r in ordered) / count,
        energy=consumption_delta(ordered[0], ordered[-1]),
    )


def closing_readings(readings: Iterable[Reading]) -> dict[date, Reading]:
    """Map each calendar day to its chronologically last reading.

    The returned dict iterates in ascending day order.
    """
    closing: dict[date, Reading] = {}
    for reading in sort_readings(readings):
        closing[reading.instant.date()] = reading
    return dict(sorted(closing.items()))


def sum_daily_deltas(readings: Sequence[Reading]) -> float:
    """Sum clamped day-over-day deltas between consecutive daily closings.

    Each day is represented by its last reading; the delta between each pair
    of consecutive days is clamped at zero before summing, so a counter drop
    inside the group does not cancel out consumption on other days.
    """
    closings = list(closing_readings(readings).values())
    return sum(
        consumption_delta(earlier, later)
        for earlier, later in zip(closings, closings[1:])
    )
