"""Tests for free-window computation."""

from datetime import date, datetime, time, timezone

import pytest

from catchup.core.availability import (
    AvailabilityRules,
    AvailabilityWindow,
    BusyBlock,
    filter_windows_by_range,
    find_free_windows,
    parse_time_range,
)

UTC = timezone.utc


def dt(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, tzinfo=UTC)


@pytest.fixture
def saturday():
    return date(2026, 10, 24)


@pytest.fixture
def tuesday():
    return date(2026, 10, 20)


class TestParseTimeRange:
    def test_parses(self):
        assert parse_time_range("09:00-17:30") == (time(9, 0), time(17, 30))

    def test_rejects_missing_end(self):
        with pytest.raises(ValueError):
            parse_time_range("09:00")


class TestFindFreeWindows:
    def test_weekend_day_is_waking_hours(self, saturday):
        windows = find_free_windows([], saturday, saturday, AvailabilityRules(), tz=UTC)
        assert len(windows) == 1
        assert windows[0].start == dt(24, 7)
        assert windows[0].end == dt(24, 22)
        assert windows[0].in_person

    def test_busy_blocks_are_removed(self, saturday):
        busy = [BusyBlock(dt(24, 12), dt(24, 14))]
        windows = find_free_windows(busy, saturday, saturday, AvailabilityRules(), tz=UTC)
        assert [(w.start, w.end) for w in windows] == [(dt(24, 7), dt(24, 12)), (dt(24, 14), dt(24, 22))]

    def test_weekday_work_hours_are_remote_only(self, tuesday):
        windows = find_free_windows([], tuesday, tuesday, AvailabilityRules(), tz=UTC)
        assert [(w.start.hour, w.end.hour, w.in_person) for w in windows] == [
            (7, 9, True),
            (9, 17, False),
            (17, 22, True),
        ]

    def test_commute_windows_and_buffer(self, tuesday):
        rules = AvailabilityRules(
            commute_windows=[(time(8, 0), time(9, 0))],
            commute_buffer_minutes=30,
            work_hours=None,
        )
        busy = [BusyBlock(dt(20, 12), dt(20, 13))]
        windows = find_free_windows(busy, tuesday, tuesday, rules, tz=UTC)
        assert [(w.start, w.end) for w in windows] == [
            (dt(20, 7), dt(20, 8)),
            (dt(20, 9), dt(20, 11, 30)),
            (dt(20, 13, 30), dt(20, 22)),
        ]

    def test_short_gaps_dropped(self, saturday):
        busy = [BusyBlock(dt(24, 7), dt(24, 12)), BusyBlock(dt(24, 12, 20), dt(24, 22))]
        assert find_free_windows(busy, saturday, saturday, AvailabilityRules(), tz=UTC) == []

    def test_multiple_days_chronological(self, tuesday, saturday):
        windows = find_free_windows([], tuesday, saturday, AvailabilityRules(work_hours=None), tz=UTC)
        assert len(windows) == 5
        assert windows == sorted(windows, key=lambda w: w.start)


class TestWindowHelpers:
    def test_covers(self):
        w = AvailabilityWindow(dt(24, 18), dt(24, 21))
        assert w.covers(dt(24, 18), dt(24, 20))
        assert not w.covers(dt(24, 17), dt(24, 19))

    def test_filter_by_range(self):
        windows = [AvailabilityWindow(dt(24, h), dt(24, h + 1)) for h in (8, 12, 18)]
        kept = filter_windows_by_range(windows, dt(24, 10), dt(24, 18))
        assert [w.start.hour for w in kept] == [12]
