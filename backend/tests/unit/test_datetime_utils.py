"""
Unit tests for datetime utilities.

Tests server timezone handling, date parsing and the half-open overlap rule.
"""

import pytest
from datetime import datetime, date, time, timezone, timedelta

from utils.datetime_utils import (
    APP_TZ, app_now, app_today, ensure_app_tz, parse_datetime_string, parse_date_string,
    intervals_overlap, combine_in_app_tz
)


class TestServerTimezone:
    """Test server timezone helpers."""

    def test_app_now_returns_timezone_aware_datetime(self):
        now = app_now()

        assert now.tzinfo is not None
        assert now.tzinfo == APP_TZ

    def test_app_today_matches_app_now(self):
        assert app_today() in (app_now().date(), (app_now() - timedelta(seconds=1)).date())


class TestEnsureAppTz:
    """Test ensure_app_tz function."""

    def test_none_passes_through(self):
        assert ensure_app_tz(None) is None

    def test_naive_datetime_is_read_as_server_wall_clock(self):
        result = ensure_app_tz(datetime(2030, 1, 1, 10, 0, 0))

        assert result.tzinfo == APP_TZ
        assert (result.year, result.month, result.day, result.hour) == (2030, 1, 1, 10)

    def test_aware_datetime_is_converted_not_relabelled(self):
        utc_dt = datetime(2030, 1, 1, 10, 0, 0, tzinfo=timezone.utc)

        result = ensure_app_tz(utc_dt)

        assert result == utc_dt
        assert result.tzinfo == APP_TZ


class TestParsing:
    """Test date and datetime string parsing."""

    def test_parse_datetime_with_z_suffix(self):
        result = parse_datetime_string("2030-03-01T01:00:00Z")

        assert result == datetime(2030, 3, 1, 1, 0, tzinfo=timezone.utc)
        assert result.tzinfo == APP_TZ

    def test_parse_datetime_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_datetime_string("not-a-date")

    @pytest.mark.parametrize("value", ["2030-03-01", "2030/3/1", " 2030-3-01 "])
    def test_parse_date_formats(self, value):
        assert parse_date_string(value) == date(2030, 3, 1)

    @pytest.mark.parametrize("value", ["", "20300301", "2030-02-30", "2030-03"])
    def test_parse_date_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            parse_date_string(value)


class TestIntervalsOverlap:
    """Test the half-open interval overlap rule."""

    def _ts(self, hour, minute=0):
        return combine_in_app_tz(date(2030, 1, 7), time(hour, minute))

    def test_adjacent_intervals_do_not_overlap(self):
        assert not intervals_overlap(self._ts(9), self._ts(10), self._ts(10), self._ts(11))
        assert not intervals_overlap(self._ts(10), self._ts(11), self._ts(9), self._ts(10))

    def test_partial_overlap(self):
        assert intervals_overlap(self._ts(10), self._ts(11), self._ts(10, 30), self._ts(11, 30))

    def test_containment_overlaps(self):
        assert intervals_overlap(self._ts(9), self._ts(12), self._ts(10), self._ts(11))

    def test_identical_intervals_overlap(self):
        assert intervals_overlap(self._ts(9), self._ts(10), self._ts(9), self._ts(10))

    def test_disjoint_intervals(self):
        assert not intervals_overlap(self._ts(8), self._ts(9), self._ts(13), self._ts(14))


def test_combine_in_app_tz_keeps_wall_clock():
    result = combine_in_app_tz(date(2030, 5, 6), time(14, 30))

    assert result.tzinfo == APP_TZ
    assert result.date() == date(2030, 5, 6)
    assert (result.hour, result.minute) == (14, 30)
