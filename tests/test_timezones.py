"""Tests for trackhound.timezones"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from trackhound.timezones import (
    DEFAULT_TIMEZONE,
    is_timezone_name,
    localize,
    parse_instant,
    resolve_timezone,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestResolveTimezone:

    @pytest.mark.parametrize("value, zone", [
        ("HST", "Pacific/Honolulu"),
        ("MST", "America/Denver"),
        ("EST", "America/New_York"),
        ("PST", "America/Los_Angeles"),
        ("CT", "America/Chicago"),
        ("cdt", "America/Chicago"),
        ("PDT", "America/Los_Angeles"),
        ("MT", "America/Denver"),
        ("AKST", "America/Anchorage"),
        (" ET ", "America/New_York"),
    ])
    def test_us_abbreviations(self, value, zone):
        assert resolve_timezone(value) == zone

    def test_abbreviation_wins_over_fixed_offset_zone(self):
        summer = parse_instant("2024-07-15T12:00:00", resolve_timezone("MST"))
        assert summer == utc(2024, 7, 15, 18)

    def test_iana_name_passes_through(self):
        assert resolve_timezone("Europe/Berlin") == "Europe/Berlin"

    @pytest.mark.parametrize("value", [None, "", "NOT-A-ZONE"])
    def test_default(self, value):
        assert resolve_timezone(value) == DEFAULT_TIMEZONE

    def test_searched_abbreviation_is_consistent(self):
        zone = resolve_timezone("CEST")
        assert zone != DEFAULT_TIMEZONE
        assert utc(2024, 7, 15, 12).astimezone(ZoneInfo(zone)).tzname() == "CEST"

    def test_is_timezone_name(self):
        assert is_timezone_name("America/Chicago") is True
        assert is_timezone_name("CT") is False


class TestLocalize:

    def test_winter(self):
        assert localize("2024-01-15 10:00:00", "%Y-%m-%d %H:%M:%S", "America/Chicago") == utc(2024, 1, 15, 16)

    def test_summer(self):
        assert localize("2024-07-15 10:00:00", "%Y-%m-%d %H:%M:%S", "America/Chicago") == utc(2024, 7, 15, 15)

    def test_default_zone(self):
        assert localize("20240115 100000", "%Y%m%d %H%M%S", None) == utc(2024, 1, 15, 15)

    def test_unknown_zone_uses_default(self):
        assert localize("20240115 100000", "%Y%m%d %H%M%S", "Mars/Olympus") == utc(2024, 1, 15, 15)

    def test_format_mismatch(self):
        with pytest.raises(ValueError):
            localize("yesterday", "%Y-%m-%d", None)


class TestParseInstant:

    def test_explicit_offset(self):
        assert parse_instant("2024-01-15T10:00:00-05:00") == utc(2024, 1, 15, 15)

    def test_offset_wins_over_zone(self):
        assert parse_instant("2024-01-15T10:00:00Z", "America/Chicago") == utc(2024, 1, 15, 10)

    def test_naive_uses_zone(self):
        assert parse_instant("2024-01-15T10:00:00", "America/Los_Angeles") == utc(2024, 1, 15, 18)

    def test_naive_defaults_to_new_york(self):
        assert parse_instant("2024-01-15T10:00:00") == utc(2024, 1, 15, 15)

    def test_epoch_milliseconds(self):
        assert parse_instant(1705312800000) == utc(2024, 1, 15, 10)
        assert parse_instant("1705312800000") == utc(2024, 1, 15, 10)

    def test_aware_datetime(self):
        value = datetime(2024, 1, 15, 10, tzinfo=ZoneInfo("America/Chicago"))
        assert parse_instant(value) == utc(2024, 1, 15, 16)

    def test_result_is_utc(self):
        assert parse_instant("2024-01-15T10:00:00+09:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("value", ["not a date", True])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_instant(value)
