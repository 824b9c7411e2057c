"""
Daily Aggregator
Merges DAY/NIGHT shift records into daily summaries and exposes the two
entry points that turn production-store rows into dated OEE metrics:

- compute_from_raw(): shift counts are authoritative, ratios are computed
- aggregate_from_persisted(): stored ratios are authoritative, nothing is recomputed
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from oee_tracker.calculations.oee import (
    DailyProductionSummary,
    OEEMetrics,
    _clamp_ratio,
    compute_daily_oee,
)
from oee_tracker.calculations.records import ProductionRecord, ShiftProductionRecord
from oee_tracker.config import EngineConfig, resolve_config

logger = logging.getLogger(__name__)

METRIC_COLUMNS = ['availability', 'performance', 'quality', 'oee']


@dataclass(frozen=True)
class DatedMetrics:
    """OEE metrics for one machine on one date (optionally one shift)."""
    machine_id: str
    date: Optional[date]
    metrics: OEEMetrics
    shift: Optional[str] = None

    def to_dict(self) -> Dict:
        row = {
            'machine_id': self.machine_id,
            'date': self.date,
            'shift': self.shift,
        }
        row.update(self.metrics.to_dict())
        return row


def aggregate_day(
    machine_id: str,
    production_date: Optional[date],
    day_shift: Optional[ShiftProductionRecord],
    night_shift: Optional[ShiftProductionRecord],
    tact_time_seconds: Optional[float],
    config: Optional[EngineConfig] = None
) -> DailyProductionSummary:
    """
    Build the daily summary for one machine-day.

    Both raw shift records are kept on the summary for audit and display.
    Calling this twice with the same inputs yields equal summaries.

    Args:
        machine_id: Machine ID
        production_date: Production date
        day_shift: DAY shift record (None or is_off means the shift did not run)
        night_shift: NIGHT shift record
        tact_time_seconds: Design cycle time of the machine; None falls back
            to config.default_tact_time_seconds
        config: Engine configuration

    Returns:
        DailyProductionSummary
    """
    config = resolve_config(config)
    for record in (day_shift, night_shift):
        if record is not None and record.machine_id != str(machine_id):
            logger.warning(
                f"Shift record for machine {record.machine_id} passed to "
                f"aggregate_day for machine {machine_id}"
            )

    if tact_time_seconds is None:
        logger.debug(
            f"No tact time for machine {machine_id}, "
            f"using default {config.default_tact_time_seconds}s"
        )
        tact_time_seconds = config.default_tact_time_seconds

    return compute_daily_oee(
        day_shift,
        night_shift,
        tact_time_seconds,
        machine_id=str(machine_id),
        production_date=production_date,
    )


def _pair_shifts(
    shift_records: Iterable[ShiftProductionRecord]
) -> Dict[Tuple[str, Optional[date]], Dict[str, ShiftProductionRecord]]:
    """Group shift records by (machine_id, date), keyed by shift name."""
    days: Dict[Tuple[str, Optional[date]], Dict[str, ShiftProductionRecord]] = {}
    for record in shift_records:
        key = (record.machine_id, record.date)
        shifts = days.setdefault(key, {})
        if record.shift in shifts:
            logger.warning(
                f"Duplicate {record.shift} shift for machine {record.machine_id} "
                f"on {record.date}; keeping the last one"
            )
        shifts[record.shift] = record
    return days


def compute_daily_summaries(
    shift_records: Iterable[ShiftProductionRecord],
    tact_times: Dict[str, float],
    config: Optional[EngineConfig] = None
) -> List[DailyProductionSummary]:
    """
    Compute one DailyProductionSummary per machine-day found in the shift records.

    Args:
        shift_records: Shift records in any order
        tact_times: Tact time (seconds) by machine ID
        config: Engine configuration; default_tact_time_seconds is used for
            machines missing from tact_times

    Returns:
        Summaries sorted by machine ID, then date (undated last)
    """
    days = _pair_shifts(shift_records)

    summaries = []
    for (machine_id, production_date), shifts in days.items():
        summaries.append(aggregate_day(
            machine_id,
            production_date,
            shifts.get('DAY'),
            shifts.get('NIGHT'),
            tact_times.get(machine_id),
            config,
        ))

    summaries.sort(key=lambda s: (s.machine_id, s.date is None, s.date or date.min))
    return summaries


def compute_from_raw(
    shift_records: Iterable[ShiftProductionRecord],
    tact_times: Dict[str, float],
    config: Optional[EngineConfig] = None
) -> List[DatedMetrics]:
    """
    Entry point for production rows that carry raw shift counts.

    Ratios are always computed from output, defects, downtime and operating
    minutes; any ratio a caller may have stored is ignored.

    Args:
        shift_records: Shift records (DAY/NIGHT) for any number of machines and dates
        tact_times: Tact time (seconds) by machine ID
        config: Engine configuration

    Returns:
        One DatedMetrics per machine-day (shift is None)

    Example:
        >>> dated = compute_from_raw(records, {"M1": 90.0})
        >>> [(d.date, round(d.metrics.oee, 3)) for d in dated]
        [(datetime.date(2024, 3, 1), 0.898)]
    """
    summaries = compute_daily_summaries(shift_records, tact_times, config)
    logger.info(f"Computed {len(summaries)} daily summaries from raw shift records")
    return [
        DatedMetrics(machine_id=s.machine_id, date=s.date, metrics=s.to_metrics())
        for s in summaries
    ]


def aggregate_from_persisted(records: Iterable[ProductionRecord]) -> List[DatedMetrics]:
    """
    Entry point for production rows whose ratios were computed when saved.

    Stored ratios are trusted and only clamped to [0, 1]; counts are never
    used to recompute them.

    Args:
        records: Persisted production records

    Returns:
        One DatedMetrics per record (shift preserved)
    """
    dated = []
    for record in records:
        metrics = OEEMetrics(
            availability=_clamp_ratio(record.availability),
            performance=_clamp_ratio(record.performance),
            quality=_clamp_ratio(record.quality),
            oee=_clamp_ratio(record.oee),
            actual_runtime=record.actual_runtime,
            planned_runtime=record.planned_runtime,
            ideal_runtime=record.ideal_runtime,
            output_qty=record.output_qty,
            defect_qty=record.defect_qty,
        )
        dated.append(DatedMetrics(
            machine_id=record.machine_id,
            date=record.date,
            metrics=metrics,
            shift=record.shift,
        ))

    logger.info(f"Loaded {len(dated)} persisted production records")
    return dated


def dated_metrics_to_frame(dated: Iterable[DatedMetrics]) -> pd.DataFrame:
    """
    Flatten dated metrics into a DataFrame (one row per entry).

    Columns: machine_id, date, shift, the four ratios, runtimes and quantities.
    """
    rows = [d.to_dict() for d in dated]
    if not rows:
        return pd.DataFrame(columns=['machine_id', 'date', 'shift'] + list(OEEMetrics.zero().to_dict()))
    return pd.DataFrame(rows)
