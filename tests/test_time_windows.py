"""Tests for date ranges, shift windows and date filtering."""

from datetime import date, datetime

import pandas as pd
import pytest

from oee_tracker.config import EngineConfig
from oee_tracker.calculations.records import ProductionRecord
from oee_tracker.time_windows.filters import (
    build_date_range,
    filter_dataframe_by_date_range,
    filter_records_by_date_range,
    overlap_minutes,
    parse_date,
    parse_datetime,
)
from oee_tracker.time_windows.models import (
    DateRange,
    get_current_shift,
    minutes_until_shift_end,
    planned_operating_minutes,
    shift_windows,
    should_notify_shift_end,
)


class TestDateRange:

    def test_inclusive_bounds(self):
        window = DateRange(date(2024, 3, 1), date(2024, 3, 3))
        assert window.contains(date(2024, 3, 1))
        assert window.contains(date(2024, 3, 3))
        assert not window.contains(date(2024, 3, 4))
        assert window.days == 3

    def test_open_bounds(self):
        assert DateRange(None, date(2024, 3, 1)).contains(date(1999, 1, 1))
        assert DateRange().days is None

    def test_inverted_range_is_empty(self):
        window = DateRange(date(2024, 3, 5), date(2024, 3, 1))
        assert window.is_empty
        assert not window.contains(date(2024, 3, 3))

    def test_presets(self):
        today = date(2024, 3, 10)
        assert DateRange.preset("week", today) == DateRange(date(2024, 3, 3), today)
        assert DateRange.preset("month", today).start == date(2024, 2, 9)
        assert DateRange.preset("quarter", today).days == 91

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Unknown period"):
            DateRange.preset("decade")

    def test_iter_dates(self):
        window = DateRange(date(2024, 2, 28), date(2024, 3, 1))
        assert window.iter_dates() == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]


class TestShiftWindows:

    def test_default_windows(self):
        windows = shift_windows(date(2024, 3, 1))

        assert windows["DAY"].start.hour == 8
        assert windows["DAY"].duration_minutes == 720
        assert windows["NIGHT"].start.date() == date(2024, 3, 1)
        assert windows["NIGHT"].end.date() == date(2024, 3, 2)
        assert windows["NIGHT"].end.hour == 8

    def test_night_shift_current_after_midnight(self):
        window = get_current_shift(datetime(2024, 3, 2, 3, 0))
        assert window.shift == "NIGHT"
        assert window.start.date() == date(2024, 3, 1)

    def test_day_shift_current(self):
        assert get_current_shift(datetime(2024, 3, 2, 10, 0)).shift == "DAY"

    def test_shift_boundary_belongs_to_next_shift(self):
        assert get_current_shift(datetime(2024, 3, 2, 20, 0)).shift == "NIGHT"

    def test_gap_between_shifts(self):
        config = EngineConfig(day_shift_start="08:00", day_shift_end="17:00",
                              night_shift_start="20:00", night_shift_end="05:00")
        assert get_current_shift(datetime(2024, 3, 2, 18, 0), config) is None
        assert minutes_until_shift_end(datetime(2024, 3, 2, 18, 0), config) == 0

    def test_shift_end_notification(self):
        assert minutes_until_shift_end(datetime(2024, 3, 2, 19, 50)) == 10
        assert should_notify_shift_end(datetime(2024, 3, 2, 19, 50))
        assert not should_notify_shift_end(datetime(2024, 3, 2, 19, 0))

    def test_planned_operating_minutes(self):
        assert planned_operating_minutes("DAY", day=date(2024, 3, 1)) == 660
        assert planned_operating_minutes("night", EngineConfig(break_time_minutes=30), date(2024, 3, 1)) == 690

    def test_invalid_shift_time(self):
        with pytest.raises(ValueError, match="Invalid shift time"):
            shift_windows(date(2024, 3, 1), EngineConfig(day_shift_start="8am"))


class TestParsing:

    @pytest.mark.parametrize("value,expected", [
        ("2024-03-01", date(2024, 3, 1)),
        ("2024-03-01T23:59:00", date(2024, 3, 1)),
        (datetime(2024, 3, 1, 12), date(2024, 3, 1)),
        (pd.Timestamp("2024-03-01 06:00"), date(2024, 3, 1)),
        (date(2024, 3, 1), date(2024, 3, 1)),
    ])
    def test_parse_date(self, value, expected):
        assert parse_date(value) == expected

    @pytest.mark.parametrize("value", [None, "", "not a date", pd.NaT, float("nan"), 42])
    def test_malformed_dates_are_none(self, value):
        assert parse_date(value) is None

    def test_parse_datetime_keeps_time(self):
        assert parse_datetime("2024-03-01 08:30") == datetime(2024, 3, 1, 8, 30)

    def test_malformed_range_bounds_are_open(self):
        window = build_date_range("garbage", "2024-03-03")
        assert window == DateRange(None, date(2024, 3, 3))


class TestFilters:

    def test_filter_dataframe(self):
        df = pd.DataFrame({"date": ["2024-02-29", "2024-03-01", "bad", "2024-03-03", None], "v": range(5)})
        filtered = filter_dataframe_by_date_range(df, DateRange(date(2024, 3, 1), date(2024, 3, 3)))
        assert list(filtered["v"]) == [1, 3]

    def test_missing_column_raises(self):
        with pytest.raises(ValueError, match="not found"):
            filter_dataframe_by_date_range(pd.DataFrame({"day": ["2024-03-01"]}), DateRange())

    def test_empty_dataframe_passthrough(self):
        assert filter_dataframe_by_date_range(pd.DataFrame(), DateRange()).empty

    def test_filter_records(self):
        records = [
            ProductionRecord("M1", "2024-03-01", "A"),
            ProductionRecord("M1", "oops", "A"),
            ProductionRecord("M1", "2024-03-05", "A"),
        ]
        kept = filter_records_by_date_range(records, DateRange(date(2024, 3, 1), date(2024, 3, 3)))
        assert len(kept) == 1

    def test_overlap_minutes(self):
        start, end = datetime(2024, 3, 1, 8), datetime(2024, 3, 1, 10)
        assert overlap_minutes(start, end, datetime(2024, 3, 1, 9), datetime(2024, 3, 1, 12)) == 60
        assert overlap_minutes(start, end, datetime(2024, 3, 1, 11), datetime(2024, 3, 1, 12)) == 0
        assert overlap_minutes(None, end, start, end) == 0
