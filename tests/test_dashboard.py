"""Tests for dashboard assembly from fetched sources."""

from datetime import date

import pandas as pd
import pytest

from oee_tracker.analysis.dashboard import build_dashboard, load_dashboard
from oee_tracker.analysis.fleet import NoMachineDataError
from oee_tracker.config import EngineConfig
from oee_tracker.db.loader import DashboardSources
from oee_tracker.time_windows.models import DateRange

WINDOW = DateRange(date(2024, 3, 1), date(2024, 3, 3))


@pytest.fixture
def sources(machines_df, production_df, downtime_df):
    return DashboardSources(machines=machines_df, production=production_df, downtime=downtime_df)


class TestBuildDashboard:

    def test_fleet_counts_idle_machine(self, sources):
        data = build_dashboard(sources, WINDOW)

        assert data.fleet.machine_count == 3
        assert data.fleet.machines_with_data == 2
        # M1 mean 0.68895, M2 0.9, M3 idle
        assert abs(data.fleet.overall.oee - (0.68895 + 0.9) / 3) < 1e-9

    def test_fleet_over_machines_with_data(self, sources):
        config = EngineConfig(include_zero_record_machines=False)
        data = build_dashboard(sources, WINDOW, config)

        assert abs(data.fleet.overall.oee - (0.68895 + 0.9) / 2) < 1e-9

    def test_records_outside_range_dropped(self, sources):
        data = build_dashboard(sources, WINDOW)

        assert len(data.records) == 3
        assert all(WINDOW.contains(r.date) for r in data.records)

    def test_trend_points(self, sources):
        data = build_dashboard(sources, WINDOW)

        assert [p.date for p in data.trend] == [date(2024, 3, 1), date(2024, 3, 3)]
        assert data.trend[0].record_count == 2
        assert abs(data.trend[1].oee - 0.576) < 1e-9

    def test_downtime_ranking(self, sources):
        data = build_dashboard(sources, WINDOW)

        assert [r.cause for r in data.downtime] == ["MAINTENANCE", "TOOL_CHANGE"]
        assert data.downtime[0].duration_minutes == 120
        assert data.downtime[1].occurrence_count == 2
        assert abs(data.downtime[-1].cumulative_percentage - 100.0) < 1e-9
        assert data.downtime_summary['total_minutes'] == 180
        assert data.downtime_summary['event_count'] == 3

    def test_machine_states(self, sources):
        data = build_dashboard(sources, WINDOW)

        assert data.machine_states == {'total': 3, 'running': 1, 'maintenance': 1, 'stopped': 1, 'other': 0}
        assert data.machine_names()["M3"] == "Lathe 1"

    def test_no_machines(self):
        with pytest.raises(NoMachineDataError, match="No machines registered"):
            build_dashboard(DashboardSources(), WINDOW)

    def test_registry_failure(self):
        sources = DashboardSources(failed_sources=['machines'])
        with pytest.raises(NoMachineDataError, match="could not be loaded"):
            build_dashboard(sources, WINDOW)

    def test_failed_source_warning(self, machines_df, production_df):
        sources = DashboardSources(machines=machines_df, production=production_df,
                                   failed_sources=['downtime'])
        data = build_dashboard(sources, WINDOW)

        assert data.warnings == ["Data source 'downtime' is unavailable"]
        assert data.downtime == []
        assert data.downtime_summary['event_count'] == 0

    def test_to_dict(self, sources):
        payload = build_dashboard(sources, WINDOW).to_dict()
        assert set(payload) >= {'fleet', 'trend', 'downtime', 'machine_states', 'warnings'}


class TestLoadDashboard:

    def test_with_injected_fetchers(self, machines_df, production_df, downtime_df):
        fetchers = {
            'machines': lambda r, m, c: machines_df,
            'production': lambda r, m, c: production_df,
            'downtime': lambda r, m, c: downtime_df,
        }
        data = load_dashboard(WINDOW, fetchers=fetchers)

        assert data.warnings == []
        assert data.fleet.machines_with_data == 2

    def test_empty_registry_raises(self):
        fetchers = {'machines': lambda r, m, c: pd.DataFrame()}
        with pytest.raises(NoMachineDataError):
            load_dashboard(WINDOW, fetchers=fetchers)


class TestMachineFilter:

    def test_fleet_limited_to_selected_machine(self, sources):
        data = build_dashboard(sources, WINDOW, machine_id="M1")

        assert data.fleet.machine_count == 1
        assert data.fleet.machines_with_data == 1
        assert abs(data.fleet.overall.oee - 0.68895) < 1e-9
        assert [m.id for m in data.machines] == ["M1"]
        assert data.machine_states['total'] == 1
        assert data.machine_states['running'] == 1

    def test_records_and_downtime_limited_to_selected_machine(self, sources):
        data = build_dashboard(sources, WINDOW, machine_id="M2")

        assert {r.machine_id for r in data.records} == {"M2"}
        assert [r.cause for r in data.downtime] == ["TOOL_CHANGE"]
        assert data.downtime_summary['total_minutes'] == 30

    def test_unregistered_machine(self, sources):
        with pytest.raises(NoMachineDataError, match="M9 is not registered"):
            build_dashboard(sources, WINDOW, machine_id="M9")

    def test_load_dashboard_passes_machine_filter(self, machines_df):
        production = pd.DataFrame([
            {"record_id": "r1", "machine_id": "M1", "date": "2024-03-01", "shift": "A",
             "output_qty": 100, "availability": 0.9, "performance": 1.0, "quality": 1.0, "oee": 0.9},
        ])
        fetchers = {
            'machines': lambda r, m, c: machines_df,
            'production': lambda r, m, c: production,
        }
        data = load_dashboard(WINDOW, "M1", fetchers=fetchers)

        assert data.fleet.machine_count == 1
        assert abs(data.fleet.overall.oee - 0.9) < 1e-9


class TestStatusDescriptions:

    def test_labels_from_status_descriptions(self, machines_df, downtime_df):
        descriptions = pd.DataFrame([
            {"status": "MAINTENANCE", "description_en": "Maintenance", "color_code": "#fd7e14"},
        ])
        sources = DashboardSources(machines=machines_df, downtime=downtime_df,
                                   status_descriptions=descriptions)
        data = build_dashboard(sources, WINDOW)

        assert data.status_label("MAINTENANCE") == "Maintenance"
        assert data.status_label("TOOL_CHANGE") == "TOOL_CHANGE"
        assert data.status_descriptions["MAINTENANCE"]["color"] == "#fd7e14"
