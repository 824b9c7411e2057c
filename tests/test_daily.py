"""Tests for the daily aggregator and its two entry points."""

from datetime import date

from conftest import make_shift
from oee_tracker.analysis.daily import (
    aggregate_day,
    aggregate_from_persisted,
    compute_daily_summaries,
    compute_from_raw,
    dated_metrics_to_frame,
)
from oee_tracker.calculations.records import ProductionRecord
from oee_tracker.config import EngineConfig


class TestAggregateDay:

    def test_keeps_raw_shift_records(self, day_only_shifts):
        day, night = day_only_shifts
        summary = aggregate_day("M1", date(2024, 3, 1), day, night, 90)

        assert summary.day_shift is day
        assert summary.night_shift is night
        assert summary.machine_id == "M1"
        assert summary.date == date(2024, 3, 1)

    def test_idempotent(self, day_only_shifts):
        day, night = day_only_shifts
        first = aggregate_day("M1", date(2024, 3, 1), day, night, 90)
        second = aggregate_day("M1", date(2024, 3, 1), day, night, 90)
        assert first == second

    def test_missing_tact_time_uses_configured_default(self, day_only_shifts):
        day, night = day_only_shifts
        summary = aggregate_day("M1", date(2024, 3, 1), day, night, None,
                                EngineConfig(default_tact_time_seconds=90))

        assert summary.tact_time_seconds == 90
        assert summary == aggregate_day("M1", date(2024, 3, 1), day, night, 90)

    def test_missing_tact_time_without_default_has_no_capacity(self, day_only_shifts):
        day, night = day_only_shifts
        summary = aggregate_day("M1", date(2024, 3, 1), day, night, None)

        assert summary.planned_capacity == 0
        assert summary.performance == 0.0


class TestComputeFromRaw:

    def _records(self):
        return [
            make_shift("NIGHT", "M1", date(2024, 3, 1), production=200),
            make_shift("DAY", "M1", date(2024, 3, 1), production=400),
            make_shift("DAY", "M1", date(2024, 3, 2), production=480, defects=10, downtime_minutes=[60]),
            make_shift("DAY", "M2", date(2024, 3, 1), production=100),
        ]

    def test_pairs_shifts_per_machine_day(self):
        summaries = compute_daily_summaries(self._records(), {"M1": 90, "M2": 60})

        assert [(s.machine_id, s.date) for s in summaries] == [
            ("M1", date(2024, 3, 1)),
            ("M1", date(2024, 3, 2)),
            ("M2", date(2024, 3, 1)),
        ]
        assert summaries[0].total_production == 600
        assert summaries[0].day_shift.shift == "DAY"
        assert summaries[0].night_shift.shift == "NIGHT"

    def test_returns_dated_metrics(self):
        dated = compute_from_raw(self._records(), {"M1": 90, "M2": 60})
        day_two = dated[1]

        assert day_two.machine_id == "M1"
        assert day_two.shift is None
        assert abs(day_two.metrics.oee - 0.8976) < 1e-4

    def test_missing_tact_time_uses_config_default(self):
        records = [make_shift("DAY", "M9", production=100)]

        assert compute_from_raw(records, {})[0].metrics.performance == 0.0

        config = EngineConfig(default_tact_time_seconds=120)
        metrics = compute_from_raw(records, {}, config)[0].metrics
        assert abs(metrics.performance - 100 / 360) < 1e-9


class TestAggregateFromPersisted:

    def test_trusts_stored_ratios(self):
        record = ProductionRecord("M1", "2024-03-01", "A", output_qty=10, defect_qty=9,
                                  availability=0.9, performance=0.8, quality=0.95, oee=0.684)
        dated = aggregate_from_persisted([record])[0]

        assert dated.metrics.quality == 0.95
        assert dated.metrics.oee == 0.684
        assert dated.shift == "DAY"
        assert dated.date == date(2024, 3, 1)

    def test_clamps_out_of_range_ratios(self):
        record = ProductionRecord("M1", "2024-03-01", "B", availability=1.2, oee=-0.1)
        metrics = aggregate_from_persisted([record])[0].metrics

        assert metrics.availability == 1.0
        assert metrics.oee == 0.0

    def test_frame_columns(self):
        record = ProductionRecord("M1", "2024-03-01", "A", output_qty=10)
        df = dated_metrics_to_frame(aggregate_from_persisted([record]))

        assert list(df["machine_id"]) == ["M1"]
        assert df.loc[0, "output_qty"] == 10

    def test_empty_frame_has_columns(self):
        df = dated_metrics_to_frame([])
        assert df.empty
        assert "oee" in df.columns
