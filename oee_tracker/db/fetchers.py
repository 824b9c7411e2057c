"""
Data Fetching Module

One fetcher per production-store source. Every fetcher returns a DataFrame
and degrades to an empty one when its query fails, so a single broken
source never takes the dashboard down. Converters turn the frames into the
record types the OEE engine consumes.
"""

import logging
from typing import Callable, Dict, List, Optional

import pandas as pd

from .pool import get_production_connection
from .queries import query_builder
from oee_tracker.calculations.records import DowntimeEntry, Machine, ProductionRecord
from oee_tracker.config import EngineConfig, resolve_config
from oee_tracker.time_windows.models import DateRange

logger = logging.getLogger(__name__)

ConnectionFactory = Callable


def _run_query(
    source: str,
    query: str,
    parameters: list,
    connection_factory: Optional[ConnectionFactory] = None,
    raise_errors: bool = False
) -> pd.DataFrame:
    """Execute a query and return its rows as a DataFrame (empty on failure unless raise_errors)."""
    connection_factory = connection_factory or get_production_connection
    try:
        with connection_factory() as conn:
            cursor = conn.cursor()
            cursor.execute(query, parameters)
            data = cursor.fetchall()
            columns = [desc[0] for desc in cursor.description]
            df = pd.DataFrame(data, columns=columns)
            logger.info(f"Successfully fetched {len(df)} {source} rows")
            return df

    except Exception as e:
        logger.error(f"Error fetching {source}: {e}", exc_info=True)
        if raise_errors:
            raise
        return pd.DataFrame()


def fetch_machines(
    active_only: bool = True,
    connection_factory: Optional[ConnectionFactory] = None,
    raise_errors: bool = False
) -> pd.DataFrame:
    """Fetch the machine registry with each machine's current tact time."""
    query, parameters = query_builder.build_machines_query(active_only)
    return _run_query("machines", query, parameters, connection_factory, raise_errors)


def fetch_production_records(
    date_range: Optional[DateRange] = None,
    machine_id: Optional[str] = None,
    limit: int = 1000,
    connection_factory: Optional[ConnectionFactory] = None,
    raise_errors: bool = False
) -> pd.DataFrame:
    """
    Fetch persisted production records.

    Args:
        date_range: Inclusive production-date range
        machine_id: Restrict to one machine
        limit: Maximum rows
        connection_factory: Context-manager factory yielding a DB connection

    Returns:
        DataFrame of production_records rows (empty on failure)
    """
    try:
        query, parameters = query_builder.build_production_records_query(date_range, machine_id, limit)
    except ValueError as e:
        logger.error(f"Invalid production records request: {e}")
        if raise_errors:
            raise
        return pd.DataFrame()
    return _run_query("production records", query, parameters, connection_factory, raise_errors)


def fetch_downtime_logs(
    date_range: Optional[DateRange] = None,
    machine_id: Optional[str] = None,
    limit: int = 1000,
    normal_state: str = "NORMAL_OPERATION",
    connection_factory: Optional[ConnectionFactory] = None,
    raise_errors: bool = False
) -> pd.DataFrame:
    """Fetch machine state logs that count as downtime."""
    try:
        query, parameters = query_builder.build_downtime_logs_query(
            date_range, machine_id, limit, normal_state
        )
    except ValueError as e:
        logger.error(f"Invalid downtime request: {e}")
        if raise_errors:
            raise
        return pd.DataFrame()
    return _run_query("downtime logs", query, parameters, connection_factory, raise_errors)


def fetch_status_descriptions(
    connection_factory: Optional[ConnectionFactory] = None,
    raise_errors: bool = False
) -> pd.DataFrame:
    query, parameters = query_builder.build_status_descriptions_query()
    return _run_query("status descriptions", query, parameters, connection_factory, raise_errors)


# ============================================================
# ROW CONVERTERS
# ============================================================

def _value(row: pd.Series, column: str, default=None):
    if column not in row.index:
        return default
    value = row[column]
    if value is None:
        return default
    try:
        if pd.isna(value):
            return default
    except (TypeError, ValueError):
        pass
    return value


def frame_to_machines(df: pd.DataFrame, config: Optional[EngineConfig] = None) -> List[Machine]:
    """
    Convert registry rows to Machine objects.

    Accepts either `tact_time_seconds` or `default_tact_time` for the tact
    time; machines without one get config.default_tact_time_seconds.
    """
    config = resolve_config(config)
    if df.empty:
        return []

    machines = []
    for _, row in df.iterrows():
        machine_id = _value(row, 'id')
        if machine_id is None:
            logger.warning("Skipping machine row without an id")
            continue
        tact = _value(row, 'tact_time_seconds', _value(row, 'default_tact_time'))
        if tact is None:
            tact = config.default_tact_time_seconds
        machines.append(Machine(
            id=str(machine_id),
            tact_time_seconds=tact,
            location=_value(row, 'location', '') or '',
            is_active=bool(_value(row, 'is_active', True)),
            current_state=_value(row, 'current_state'),
            name=_value(row, 'name', '') or '',
        ))
    return machines


def frame_to_production_records(df: pd.DataFrame) -> List[ProductionRecord]:
    """
    Convert production_records rows to ProductionRecord objects.

    Rows with an unknown shift code are skipped and logged.
    """
    if df.empty:
        return []

    records = []
    for _, row in df.iterrows():
        try:
            records.append(ProductionRecord(
                machine_id=_value(row, 'machine_id', ''),
                date=_value(row, 'date'),
                shift=_value(row, 'shift', ''),
                output_qty=_value(row, 'output_qty', 0),
                defect_qty=_value(row, 'defect_qty', 0),
                planned_runtime=_value(row, 'planned_runtime', 0.0),
                actual_runtime=_value(row, 'actual_runtime', 0.0),
                ideal_runtime=_value(row, 'ideal_runtime', 0.0),
                availability=_value(row, 'availability', 0.0),
                performance=_value(row, 'performance', 0.0),
                quality=_value(row, 'quality', 0.0),
                oee=_value(row, 'oee', 0.0),
                record_id=_value(row, 'record_id'),
            ))
        except ValueError as e:
            logger.warning(f"Skipping production record {_value(row, 'record_id')}: {e}")
    return records


def frame_to_downtime_entries(df: pd.DataFrame) -> List[DowntimeEntry]:
    """Convert machine_logs rows (duration in minutes) to DowntimeEntry objects."""
    if df.empty:
        return []

    entries = []
    for _, row in df.iterrows():
        state = _value(row, 'state')
        entries.append(DowntimeEntry(
            start_time=_value(row, 'start_time'),
            end_time=_value(row, 'end_time'),
            duration_minutes=_value(row, 'duration', _value(row, 'duration_minutes', 0.0)),
            reason=str(_value(row, 'reason', state or '')),
            state=state,
            id=_value(row, 'log_id', _value(row, 'id')),
            machine_id=_value(row, 'machine_id'),
        ))
    return entries


def frame_to_status_descriptions(df: pd.DataFrame) -> Dict[str, Dict[str, str]]:
    """
    Convert machine_status_descriptions rows to display metadata by state.

    Returns:
        Dictionary mapping state to {'label': ..., 'color': ...}. The label
        falls back to the state itself and the color to an empty string.
    """
    if df.empty:
        return {}

    descriptions = {}
    for _, row in df.iterrows():
        state = _value(row, 'status')
        if state is None:
            continue
        descriptions[str(state)] = {
            'label': str(_value(row, 'description_en', state)),
            'color': str(_value(row, 'color_code', '')),
        }
    return descriptions
