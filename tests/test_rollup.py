"""
Tests for per-device rollups, rankings and pie distributions.

CHANGELOG:
- 2026-10-09: Initial creation (STORY-106)
"""

from datetime import datetime

import pytest

from tests.factories import reading
from wattboard.core.models import Device, DeviceEnergyStats, RankingItem, RankingMetric
from wattboard.core.rollup import (
    OTHERS_LABEL,
    average_power_factor,
    build_dashboard,
    current_month_energy,
    device_stats,
    last_month_energy,
    pie_distribution,
    rank_devices,
    total_energy,
)


def _items(values: list[float]) -> list[RankingItem]:
    return [RankingItem(device_id=f"d{i}", device_name=f"Device {i}", value=v) for i, v in enumerate(values)]


class TestMonthEnergy:
    def test_current_and_last_month(self) -> None:
        readings = [
            reading(datetime(2025, 9, 1), 10.0),
            reading(datetime(2025, 9, 30, 23), 25.0),
            reading(datetime(2025, 10, 1), 25.0),
            reading(datetime(2025, 10, 15), 31.5),
        ]
        as_of = datetime(2025, 10, 20)
        assert current_month_energy(readings, as_of) == pytest.approx(6.5)
        assert last_month_energy(readings, as_of) == pytest.approx(15.0)

    def test_last_month_wraps_from_january_to_december(self) -> None:
        readings = [
            reading(datetime(2024, 12, 1), 100.0),
            reading(datetime(2024, 12, 31), 140.0),
            reading(datetime(2025, 1, 5), 150.0),
        ]
        assert last_month_energy(readings, datetime(2025, 1, 10)) == pytest.approx(40.0)

    def test_month_without_readings_is_zero(self) -> None:
        readings = [reading(datetime(2025, 10, 1), 10.0)]
        assert last_month_energy(readings, datetime(2025, 10, 2)) == 0.0

    def test_counter_drop_within_month_is_clamped(self) -> None:
        readings = [reading(datetime(2025, 10, 1), 50.0), reading(datetime(2025, 10, 9), 3.0)]
        assert current_month_energy(readings, datetime(2025, 10, 10)) == 0.0


class TestScalars:
    def test_total_energy_is_latest_counter(self) -> None:
        readings = [reading(datetime(2025, 10, 2), 42.0), reading(datetime(2025, 10, 1), 40.0)]
        assert total_energy(readings) == 42.0
        assert total_energy([]) == 0.0

    def test_average_power_factor(self) -> None:
        readings = [
            reading(datetime(2025, 10, 1), 1.0, power_factor=0.8),
            reading(datetime(2025, 10, 2), 1.0, power_factor=1.0),
        ]
        assert average_power_factor(readings) == pytest.approx(0.9)
        assert average_power_factor([]) == 0.0

    def test_device_stats_uses_latest_reading(self) -> None:
        readings = [
            reading(datetime(2025, 10, 1), 1.0, power=100.0),
            reading(datetime(2025, 10, 2), 2.0, power=300.0, voltage=231.0, current=1.3),
        ]
        stats = device_stats(readings, datetime(2025, 10, 3))
        assert stats.latest_power == 300.0
        assert stats.latest_voltage == 231.0
        assert stats.latest_current == 1.3
        assert stats.current_month == pytest.approx(1.0)


class TestRanking:
    def test_sorted_descending_and_non_positive_excluded(self) -> None:
        devices = [Device(id=f"d{i}", name=f"Device {i}") for i in range(4)]
        stats = {
            "d0": DeviceEnergyStats(total=5.0),
            "d1": DeviceEnergyStats(total=0.0),
            "d2": DeviceEnergyStats(total=9.0),
        }
        ranked = rank_devices(devices, stats, RankingMetric.TOTAL)
        assert [(r.device_id, r.value) for r in ranked] == [("d2", 9.0), ("d0", 5.0)]

    def test_ties_keep_device_order(self) -> None:
        devices = [Device(id=f"d{i}", name=f"Device {i}") for i in range(3)]
        stats = {d.id: DeviceEnergyStats(current_month=2.0) for d in devices}
        ranked = rank_devices(devices, stats, RankingMetric.CURRENT_MONTH)
        assert [r.device_id for r in ranked] == ["d0", "d1", "d2"]


class TestPieDistribution:
    def test_long_tail_folds_into_others(self) -> None:
        slices = pie_distribution(_items([50, 40, 30, 20, 10, 5, 1]))
        assert len(slices) == 6
        assert [s.value for s in slices[:5]] == [50, 40, 30, 20, 10]
        assert slices[-1].name == OTHERS_LABEL
        assert slices[-1].value == 6
        assert slices[-1].device_id is None

    def test_short_list_is_unchanged(self) -> None:
        slices = pie_distribution(_items([3, 2, 1]))
        assert [s.name for s in slices] == ["Device 0", "Device 1", "Device 2"]

    def test_six_items_fold_the_sixth(self) -> None:
        slices = pie_distribution(_items([6, 5, 4, 3, 2, 1]))
        assert len(slices) == 6
        assert slices[-1].name == OTHERS_LABEL
        assert slices[-1].value == 1

    def test_invalid_max_slices(self) -> None:
        with pytest.raises(ValueError):
            pie_distribution(_items([1]), max_slices=1)


class TestDashboard:
    def test_build_dashboard(self) -> None:
        devices = [Device(id="a", name="Fridge"), Device(id="b", name="Heater"), Device(id="c", name="Idle")]
        readings = {
            "a": [reading(datetime(2025, 10, 1), 10.0), reading(datetime(2025, 10, 10), 12.0)],
            "b": [reading(datetime(2025, 10, 1), 5.0), reading(datetime(2025, 10, 10), 20.0)],
        }
        summary = build_dashboard(devices, readings, datetime(2025, 10, 12))

        assert set(summary.stats) == {"a", "b", "c"}
        assert set(summary.rankings) == set(RankingMetric)
        assert RankingMetric.POWER_FACTOR not in summary.distributions
        current = summary.rankings[RankingMetric.CURRENT_MONTH]
        assert [(r.device_name, r.value) for r in current] == [("Heater", 15.0), ("Fridge", 2.0)]
        assert [s.name for s in summary.distributions[RankingMetric.TOTAL]] == ["Heater", "Fridge"]
