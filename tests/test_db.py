"""Tests for the query builder, fetchers and source loader (no database needed)."""

import time
from datetime import date

import pandas as pd
import psycopg2
import psycopg2.pool
import pytest

from conftest import fake_connection_factory
from oee_tracker.config import EngineConfig
from oee_tracker.db.fetchers import (
    fetch_downtime_logs,
    fetch_machines,
    fetch_production_records,
    frame_to_downtime_entries,
    frame_to_machines,
    frame_to_production_records,
    frame_to_status_descriptions,
)
from oee_tracker.db.loader import SOURCE_NAMES, load_dashboard_sources
from oee_tracker.db.pool import ProductionDatabasePool
from oee_tracker.db.queries import MAX_LIMIT, ProductionQueryBuilder
from oee_tracker.time_windows.models import DateRange

WINDOW = DateRange(date(2024, 3, 1), date(2024, 3, 3))


class TestQueryBuilder:

    def setup_method(self):
        self.builder = ProductionQueryBuilder()

    def test_production_query_parameters(self):
        query, parameters = self.builder.build_production_records_query(WINDOW, "M1", 500)

        assert query.count("%s") == len(parameters)
        assert parameters == [date(2024, 3, 1), date(2024, 3, 3), "M1", 500]
        assert "FROM production_records" in query

    def test_open_range_has_no_date_conditions(self):
        query, parameters = self.builder.build_production_records_query(DateRange(), None, 10)
        assert "WHERE" not in query
        assert parameters == [10]

    def test_downtime_query_includes_whole_end_date(self):
        query, parameters = self.builder.build_downtime_logs_query(WINDOW)

        assert query.count("%s") == len(parameters)
        assert parameters[0] == "NORMAL_OPERATION"
        assert date(2024, 3, 4) in parameters
        assert "start_time < %s" in query

    @pytest.mark.parametrize("machine_id", ["M1; DROP TABLE machines", "", "x" * 65])
    def test_invalid_machine_id(self, machine_id):
        with pytest.raises(ValueError):
            self.builder.build_production_records_query(WINDOW, machine_id)

    def test_limit_clamped(self):
        assert self.builder.validate_limit(0) == 1
        assert self.builder.validate_limit(10 ** 9) == MAX_LIMIT
        with pytest.raises(ValueError):
            self.builder.validate_limit("100")

    def test_invalid_state(self):
        with pytest.raises(ValueError):
            self.builder.build_downtime_logs_query(WINDOW, normal_state="normal'; --")

    def test_machines_query(self):
        query, parameters = self.builder.build_machines_query()
        assert parameters == [True]
        assert "LEFT JOIN model_processes" in query
        assert self.builder.build_machines_query(active_only=False)[1] == []


class TestFetchers:

    def test_rows_become_dataframe(self):
        factory = fake_connection_factory(rows=[("M1", "Press 1")], columns=["id", "name"])
        df = fetch_machines(connection_factory=factory)

        assert list(df.columns) == ["id", "name"]
        assert df.iloc[0]["name"] == "Press 1"
        assert factory.cursor.executed[0][1] == [True]

    def test_failure_degrades_to_empty(self):
        factory = fake_connection_factory(error=RuntimeError("connection reset"))
        assert fetch_production_records(WINDOW, connection_factory=factory).empty

    def test_failure_raised_on_request(self):
        factory = fake_connection_factory(error=RuntimeError("connection reset"))
        with pytest.raises(RuntimeError):
            fetch_downtime_logs(WINDOW, connection_factory=factory, raise_errors=True)

    def test_invalid_request_degrades_to_empty(self):
        assert fetch_production_records(WINDOW, machine_id="bad id!").empty


class TestConverters:

    def test_machines(self, machines_df):
        machines = frame_to_machines(machines_df, EngineConfig(default_tact_time_seconds=60))

        assert [m.id for m in machines] == ["M1", "M2", "M3"]
        assert machines[0].tact_time_seconds == 90
        assert machines[2].tact_time_seconds == 60
        assert machines[1].current_state == "MAINTENANCE"

    def test_machines_default_tact_column(self):
        df = pd.DataFrame([{"id": "M1", "name": "Press", "default_tact_time": 45}])
        assert frame_to_machines(df)[0].tact_time_seconds == 45

    def test_production_records(self, production_df):
        records = frame_to_production_records(production_df)

        assert len(records) == 4
        assert records[0].shift == "DAY"
        assert records[1].shift == "NIGHT"
        assert records[0].date == date(2024, 3, 1)
        assert records[0].oee == 0.8019

    def test_production_record_with_unknown_shift_skipped(self):
        df = pd.DataFrame([{"record_id": "x", "machine_id": "M1", "date": "2024-03-01", "shift": "C"}])
        assert frame_to_production_records(df) == []

    def test_downtime_entries(self, downtime_df):
        entries = frame_to_downtime_entries(downtime_df)

        assert len(entries) == 4
        assert entries[0].cause == "MAINTENANCE"
        assert entries[0].duration_minutes == 120
        assert entries[0].machine_id == "M1"
        assert entries[0].start_time.hour == 9

    def test_empty_frames(self):
        assert frame_to_machines(pd.DataFrame()) == []
        assert frame_to_production_records(pd.DataFrame()) == []
        assert frame_to_downtime_entries(pd.DataFrame()) == []
        assert frame_to_status_descriptions(pd.DataFrame()) == {}

    def test_status_descriptions(self):
        df = pd.DataFrame([
            {"status": "TOOL_CHANGE", "description_en": "Tool change", "color_code": "#ffc107"},
            {"status": "MAINTENANCE", "description_en": None, "color_code": None},
        ])
        descriptions = frame_to_status_descriptions(df)

        assert descriptions["TOOL_CHANGE"] == {"label": "Tool change", "color": "#ffc107"}
        assert descriptions["MAINTENANCE"] == {"label": "MAINTENANCE", "color": ""}


class TestLoader:

    def _fetchers(self, **overrides):
        fetchers = {
            "machines": lambda r, m, c: pd.DataFrame([{"id": "M1"}]),
            "production": lambda r, m, c: pd.DataFrame([{"machine_id": "M1", "date": r.start}]),
            "downtime": lambda r, m, c: pd.DataFrame(),
        }
        fetchers.update(overrides)
        return fetchers

    def test_source_names(self):
        assert SOURCE_NAMES == ["machines", "production", "downtime", "status_descriptions"]

    def test_loads_all_sources(self):
        sources = load_dashboard_sources(WINDOW, fetchers=self._fetchers())

        assert sources.failed_sources == []
        assert len(sources.machines) == 1
        assert sources.production.iloc[0]["date"] == date(2024, 3, 1)
        assert sources.status_descriptions.empty

    def test_failed_source_degrades_independently(self):
        def broken(r, m, c):
            raise RuntimeError("timeout talking to db")

        sources = load_dashboard_sources(WINDOW, fetchers=self._fetchers(downtime=broken))

        assert sources.failed_sources == ["downtime"]
        assert sources.is_partial
        assert sources.downtime.empty
        assert len(sources.machines) == 1

    def test_slow_source_times_out(self):
        def slow(r, m, c):
            time.sleep(0.5)
            return pd.DataFrame([{"id": "late"}])

        config = EngineConfig(fetch_timeout_seconds=0.05)
        sources = load_dashboard_sources(WINDOW, config=config, fetchers=self._fetchers(machines=slow))

        assert sources.failed_sources == ["machines"]
        assert sources.machines.empty

    def test_machine_filter_passed_to_fetchers(self):
        seen = []

        def production(r, m, c):
            seen.append((m, c.fetch_limit))
            return pd.DataFrame()

        load_dashboard_sources(WINDOW, "M7", EngineConfig(fetch_limit=50),
                               fetchers=self._fetchers(production=production))
        assert seen == [("M7", 50)]


class _StubPool:
    def __init__(self, minconn, maxconn, **kwargs):
        self.kwargs = kwargs
        self.returned = []
        self.exhausted = False

    def getconn(self):
        if self.exhausted:
            raise psycopg2.pool.PoolError("connection pool exhausted")
        return "pooled-connection"

    def putconn(self, conn):
        self.returned.append(conn)

    def closeall(self):
        pass


class _DirectConnection:
    closed = False

    def close(self):
        self.closed = True


class TestConnectionPool:

    @pytest.fixture
    def db_pool(self, monkeypatch):
        monkeypatch.setattr(psycopg2.pool, "ThreadedConnectionPool", _StubPool)
        db_pool = ProductionDatabasePool({"host": "db.local", "database": "production"})
        assert db_pool.initialize_pool()
        return db_pool

    def test_pooled_connection_returned(self, db_pool):
        with db_pool.get_connection() as conn:
            assert conn == "pooled-connection"

        assert db_pool.pool.returned == ["pooled-connection"]
        stats = db_pool.get_stats()
        assert stats["connections_used"] == 1
        assert stats["connections_returned"] == 1
        assert stats["pool_initialized"]

    def test_exhausted_pool_falls_back_to_direct(self, db_pool, monkeypatch):
        direct = _DirectConnection()
        monkeypatch.setattr(psycopg2, "connect", lambda **kwargs: direct)
        db_pool.pool.exhausted = True

        with db_pool.get_connection() as conn:
            assert conn is direct

        assert direct.closed
        assert db_pool.get_stats()["pool_exhausted"] == 1
        assert db_pool.get_stats()["direct_connections"] == 1

    def test_close_pool(self, db_pool):
        db_pool.close_pool()
        assert db_pool.get_stats()["pool_initialized"] is False
