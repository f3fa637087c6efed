"""
Tests for the timestamp codec.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-101)
"""

from datetime import datetime

import pytest

from wattboard.core.timestamps import (
    MalformedIdentifier,
    Precision,
    Resolution,
    bucket_label,
    encode_instant,
    format_full_datetime,
    format_label,
    identifier_precision,
    parse_instant,
)


class TestParseInstant:
    def test_seconds_width(self) -> None:
        assert parse_instant("20251030T070503") == datetime(2025, 10, 30, 7, 5, 3)

    def test_minutes_width_defaults_seconds(self) -> None:
        assert parse_instant("20251030T0705") == datetime(2025, 10, 30, 7, 5, 0)

    def test_date_only_defaults_time(self) -> None:
        assert parse_instant("20251030") == datetime(2025, 10, 30)

    def test_month_is_one_based(self) -> None:
        assert parse_instant("20250101").month == 1
        assert parse_instant("20251201").month == 12

    @pytest.mark.parametrize(
        "identifier",
        [
            "",
            "2025103",
            "20251030T07",
            "20251030T0705031",
            "2025-10-30",
            "20251030X070503",
            "2025103OT070503",
        ],
    )
    def test_unsupported_shapes_raise(self, identifier: str) -> None:
        with pytest.raises(MalformedIdentifier):
            parse_instant(identifier)

    @pytest.mark.parametrize("identifier", ["20251330", "20250230", "20251030T2500"])
    def test_impossible_calendar_values_raise(self, identifier: str) -> None:
        with pytest.raises(MalformedIdentifier):
            parse_instant(identifier)

    def test_malformed_identifier_is_value_error(self) -> None:
        with pytest.raises(ValueError, match="20251"):
            parse_instant("20251")


class TestRoundTrip:
    @pytest.mark.parametrize(
        ("identifier", "precision"),
        [
            ("20251030T070503", Precision.SECOND),
            ("20240229T235959", Precision.SECOND),
            ("20251030T0705", Precision.MINUTE),
            ("20251030", Precision.DAY),
        ],
    )
    def test_parse_then_encode_reproduces_identifier(
        self, identifier: str, precision: Precision
    ) -> None:
        assert identifier_precision(identifier) is precision
        assert encode_instant(parse_instant(identifier), precision) == identifier


class TestLabels:
    @pytest.mark.parametrize(
        ("resolution", "expected"),
        [
            (Resolution.ROLLING_24H, "07:05"),
            (Resolution.WEEK, "Oct 30, 07 AM"),
            (Resolution.MONTH, "Oct 30"),
            (Resolution.YEAR, "Oct 2025"),
        ],
    )
    def test_format_label(self, resolution: Resolution, expected: str) -> None:
        assert format_label("20251030T070503", resolution) == expected

    def test_week_label_afternoon_and_midnight(self) -> None:
        assert format_label("20251030T1500", Resolution.WEEK) == "Oct 30, 03 PM"
        assert format_label("20251030T0000", Resolution.WEEK) == "Oct 30, 12 AM"

    def test_format_label_accepts_string_resolution(self) -> None:
        assert format_label("20251030T070503", "1m") == "Oct 30"

    def test_format_full_datetime(self) -> None:
        assert format_full_datetime("20251030T070503") == "10/30/2025, 07:05:03 AM"
        assert format_full_datetime("20251030T131500") == "10/30/2025, 01:15:00 PM"
        assert format_full_datetime(datetime(2025, 1, 2)) == "01/02/2025, 12:00:00 AM"

    def test_bucket_labels(self) -> None:
        start = datetime(2025, 10, 29, 14)
        assert bucket_label(start, Resolution.ROLLING_24H) == "14:00"
        assert bucket_label(start, Resolution.WEEK) == "Wed"
        assert bucket_label(start, Resolution.MONTH) == "Oct 29"
        assert bucket_label(start, Resolution.YEAR) == "Oct"
