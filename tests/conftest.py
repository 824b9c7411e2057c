"""Shared fixtures for the OEE engine tests."""

from contextlib import contextmanager
from datetime import date, datetime

import pandas as pd
import pytest

from oee_tracker.calculations.oee import OEEMetrics
from oee_tracker.calculations.records import DowntimeEntry, ShiftProductionRecord
from oee_tracker.config import EngineConfig

PRODUCTION_DAY = date(2024, 3, 1)


def make_shift(shift="DAY", machine_id="M1", day=PRODUCTION_DAY, production=0, defects=0,
               downtime_minutes=(), operating_minutes=720, is_off=False):
    """Build a shift record with one downtime entry per duration given."""
    entries = [
        DowntimeEntry(start_time=None, duration_minutes=minutes, reason="MAINTENANCE", id=f"dt-{i}")
        for i, minutes in enumerate(downtime_minutes)
    ]
    return ShiftProductionRecord(
        machine_id=machine_id,
        date=day,
        shift=shift,
        operator="operator-1",
        actual_production=production,
        defect_quantity=defects,
        downtime_entries=entries,
        operating_minutes=operating_minutes,
        is_off=is_off,
    )


def make_metrics(oee=0.0, availability=None, performance=None, quality=None, output_qty=0, defect_qty=0):
    """OEEMetrics where unspecified components default to the OEE value."""
    return OEEMetrics(
        availability=oee if availability is None else availability,
        performance=oee if performance is None else performance,
        quality=oee if quality is None else quality,
        oee=oee,
        output_qty=output_qty,
        defect_qty=defect_qty,
    )


def make_downtime(cause, minutes, count, machine_id="M1", start=datetime(2024, 3, 1, 9, 0)):
    return [
        DowntimeEntry(start_time=start, duration_minutes=minutes, state=cause, machine_id=machine_id)
        for _ in range(count)
    ]


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def day_only_shifts():
    """DAY shift worked, NIGHT shift off."""
    day = make_shift("DAY", production=480, defects=10, downtime_minutes=[60])
    night = make_shift("NIGHT", production=0, is_off=True)
    return day, night


@pytest.fixture
def machines_df():
    return pd.DataFrame([
        {"id": "M1", "name": "Press 1", "location": "Line A", "is_active": True,
         "current_state": "NORMAL_OPERATION", "tact_time_seconds": 90.0},
        {"id": "M2", "name": "Press 2", "location": "Line A", "is_active": True,
         "current_state": "MAINTENANCE", "tact_time_seconds": 120.0},
        {"id": "M3", "name": "Lathe 1", "location": "Line B", "is_active": True,
         "current_state": "PLANNED_STOP", "tact_time_seconds": None},
    ])


@pytest.fixture
def production_df():
    return pd.DataFrame([
        {"record_id": "r1", "machine_id": "M1", "date": "2024-03-01", "shift": "A",
         "planned_runtime": 660, "actual_runtime": 600, "ideal_runtime": 540,
         "output_qty": 360, "defect_qty": 4,
         "availability": 0.9, "performance": 0.9, "quality": 0.99, "oee": 0.8019},
        {"record_id": "r2", "machine_id": "M1", "date": "2024-03-03", "shift": "B",
         "planned_runtime": 660, "actual_runtime": 500, "ideal_runtime": 400,
         "output_qty": 260, "defect_qty": 10,
         "availability": 0.75, "performance": 0.8, "quality": 0.96, "oee": 0.576},
        {"record_id": "r3", "machine_id": "M2", "date": "2024-03-01", "shift": "A",
         "planned_runtime": 660, "actual_runtime": 660, "ideal_runtime": 600,
         "output_qty": 300, "defect_qty": 0,
         "availability": 1.0, "performance": 0.9, "quality": 1.0, "oee": 0.9},
        {"record_id": "r4", "machine_id": "M2", "date": "2024-02-01", "shift": "A",
         "planned_runtime": 660, "actual_runtime": 660, "ideal_runtime": 600,
         "output_qty": 300, "defect_qty": 0,
         "availability": 1.0, "performance": 1.0, "quality": 1.0, "oee": 1.0},
    ])


@pytest.fixture
def downtime_df():
    return pd.DataFrame([
        {"log_id": "l1", "machine_id": "M1", "state": "MAINTENANCE",
         "start_time": "2024-03-01T09:00:00", "end_time": "2024-03-01T11:00:00", "duration": 120},
        {"log_id": "l2", "machine_id": "M2", "state": "TOOL_CHANGE",
         "start_time": "2024-03-01T14:00:00", "end_time": "2024-03-01T14:30:00", "duration": 30},
        {"log_id": "l3", "machine_id": "M1", "state": "TOOL_CHANGE",
         "start_time": "2024-03-02T08:00:00", "end_time": "2024-03-02T08:30:00", "duration": 30},
        {"log_id": "l4", "machine_id": "M2", "state": "MAINTENANCE",
         "start_time": "2024-01-15T08:00:00", "end_time": "2024-01-15T09:00:00", "duration": 60},
    ])


class FakeCursor:
    def __init__(self, rows, columns, error=None):
        self.rows = rows
        self.description = [(name,) for name in columns]
        self.error = error
        self.executed = []

    def execute(self, query, parameters=None):
        if self.error is not None:
            raise self.error
        self.executed.append((query, parameters))

    def fetchall(self):
        return list(self.rows)


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self):
        return self._cursor


def fake_connection_factory(rows=(), columns=(), error=None):
    """Context-manager factory standing in for get_production_connection."""
    cursor = FakeCursor(rows, columns, error)

    @contextmanager
    def factory():
        yield FakeConnection(cursor)

    factory.cursor = cursor
    return factory
