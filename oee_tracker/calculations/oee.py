"""
OEE Calculator for Shift Production Data

OEE = Availability × Performance × Quality

Daily figures for one machine are derived from its DAY and NIGHT shift records:
- Availability = (Planned operating minutes - Downtime) / Planned operating minutes
- Performance  = min(1, Actual output / Planned capacity)
- Quality      = Good units / Actual output (100% when nothing was produced)

Planned capacity = floor(Operating minutes × 60 / Tact time). A shift marked
"off" is left out of every total. All ratios are clamped to [0, 1] and no
division can produce NaN or Infinity.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from .records import (
    NORMAL_OPERATION,
    SHIFT_CODES,
    ShiftProductionRecord,
    non_negative,
)
from oee_tracker.time_windows.filters import overlap_minutes, parse_datetime

logger = logging.getLogger(__name__)

Number = Union[int, float]


@dataclass
class OEEMetrics:
    """Container for OEE calculation results"""
    availability: float  # 0.0 to 1.0
    performance: float   # 0.0 to 1.0
    quality: float       # 0.0 to 1.0
    oee: float           # 0.0 to 1.0
    actual_runtime: float = 0.0   # minutes
    planned_runtime: float = 0.0  # minutes
    ideal_runtime: float = 0.0    # minutes
    output_qty: int = 0
    defect_qty: int = 0

    @classmethod
    def zero(cls) -> 'OEEMetrics':
        """All-zero metrics for machines or windows without data"""
        return cls(availability=0.0, performance=0.0, quality=0.0, oee=0.0)

    @property
    def good_qty(self) -> int:
        return max(0, self.output_qty - self.defect_qty)

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for easy display"""
        return {
            'availability': self.availability,
            'performance': self.performance,
            'quality': self.quality,
            'oee': self.oee,
            'actual_runtime': self.actual_runtime,
            'planned_runtime': self.planned_runtime,
            'ideal_runtime': self.ideal_runtime,
            'output_qty': self.output_qty,
            'defect_qty': self.defect_qty,
        }

    def to_percentage_dict(self) -> Dict[str, float]:
        """Convert to percentage values for display"""
        return {
            'availability': round(self.availability * 100, 2),
            'performance': round(self.performance * 100, 2),
            'quality': round(self.quality * 100, 2),
            'oee': round(self.oee * 100, 2)
        }


@dataclass
class DailyProductionSummary:
    """One machine-day: both raw shift records plus the derived totals and ratios."""
    machine_id: str
    date: Optional[date]
    day_shift: Optional[ShiftProductionRecord]
    night_shift: Optional[ShiftProductionRecord]
    total_production: int
    total_defects: int
    total_good: int
    total_downtime_minutes: float
    total_operating_minutes: float
    planned_capacity: int
    tact_time_seconds: float
    availability: float
    performance: float
    quality: float
    oee: float

    def to_metrics(self) -> OEEMetrics:
        """
        Express the summary as OEEMetrics with runtime fields filled in.

        planned_runtime is the operating minutes of the shifts that ran,
        actual_runtime subtracts downtime, ideal_runtime is the time the
        actual output needs at design tact time.
        """
        planned = self.total_operating_minutes
        return OEEMetrics(
            availability=self.availability,
            performance=self.performance,
            quality=self.quality,
            oee=self.oee,
            actual_runtime=max(0.0, planned - self.total_downtime_minutes),
            planned_runtime=planned,
            ideal_runtime=calculate_ideal_runtime(self.total_production, self.tact_time_seconds),
            output_qty=self.total_production,
            defect_qty=self.total_defects,
        )

    def to_shift_rows(self) -> List[Dict]:
        """
        Build the per-shift rows the production store persists.

        One row per shift that was not off. Every row carries the daily
        ratios, and runtimes are the shift's own.
        """
        rows = []
        for record in (self.day_shift, self.night_shift):
            if record is None or record.is_off:
                continue
            planned = record.operating_minutes
            rows.append({
                'machine_id': self.machine_id,
                'date': self.date.isoformat() if self.date else None,
                'shift': SHIFT_CODES[record.shift],
                'planned_runtime': planned,
                'actual_runtime': max(0.0, planned - record.total_downtime_minutes),
                'ideal_runtime': calculate_ideal_runtime(record.actual_production, self.tact_time_seconds),
                'output_qty': record.actual_production,
                'defect_qty': record.defect_quantity,
                'availability': self.availability,
                'performance': self.performance,
                'quality': self.quality,
                'oee': self.oee,
            })
        return rows

    def to_dict(self) -> Dict:
        """Convert to dictionary for persistence and display"""
        return {
            'machine_id': self.machine_id,
            'date': self.date.isoformat() if self.date else None,
            'day_shift': self.day_shift.to_dict() if self.day_shift else None,
            'night_shift': self.night_shift.to_dict() if self.night_shift else None,
            'total_production': self.total_production,
            'total_defects': self.total_defects,
            'total_good_quantity': self.total_good,
            'total_downtime_minutes': self.total_downtime_minutes,
            'total_operating_minutes': self.total_operating_minutes,
            'planned_capacity': self.planned_capacity,
            'availability': self.availability,
            'performance': self.performance,
            'quality': self.quality,
            'oee': self.oee,
        }


# ============================================================
# RATIO GUARDS
# ============================================================

def _clamp_ratio(value: Number) -> float:
    """Clamp to [0, 1]; NaN and infinities become 0."""
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return min(1.0, max(0.0, value))


def _safe_tact_time(tact_time_seconds) -> float:
    tact = non_negative(tact_time_seconds)
    return tact if tact > 0 else 0.0


# ============================================================
# OEE COMPONENTS
# ============================================================

def calculate_capacity(operating_minutes: Number, tact_time_seconds: Number) -> int:
    """
    Theoretical maximum output for the operating time.

    Args:
        operating_minutes: Planned operating time in minutes
        tact_time_seconds: Design cycle time per unit in seconds

    Returns:
        floor(operating_minutes * 60 / tact_time_seconds), or 0 when either
        input is zero, negative or missing

    Example:
        >>> calculate_capacity(720, 90)
        480
    """
    minutes = non_negative(operating_minutes)
    tact = _safe_tact_time(tact_time_seconds)
    if tact <= 0 or minutes <= 0:
        return 0
    return int(math.floor(minutes * 60 / tact))


def calculate_availability(planned_minutes: Number, downtime_minutes: Number) -> float:
    """
    Availability = (planned - downtime) / planned, clamped to [0, 1].

    Returns 0.0 when nothing was planned.
    """
    planned = non_negative(planned_minutes)
    if planned <= 0:
        return 0.0
    downtime = non_negative(downtime_minutes)
    return _clamp_ratio((planned - downtime) / planned)


def calculate_performance(production: Number, capacity: Number) -> float:
    """Performance = min(1, production / capacity); 0.0 without capacity."""
    capacity = non_negative(capacity)
    if capacity <= 0:
        return 0.0
    return _clamp_ratio(min(1.0, non_negative(production) / capacity))


def calculate_quality(production: Number, good_quantity: Number) -> float:
    """
    Quality = good / production.

    Zero production counts as perfect quality (1.0), not undefined.
    """
    production = non_negative(production)
    if production <= 0:
        return 1.0
    return _clamp_ratio(non_negative(good_quantity) / production)


def calculate_oee(availability: float, performance: float, quality: float) -> float:
    """OEE = A × P × Q. Inputs are clamped, the product is not rounded."""
    return _clamp_ratio(availability) * _clamp_ratio(performance) * _clamp_ratio(quality)


# ============================================================
# DAILY OEE FROM SHIFT RECORDS
# ============================================================

def compute_daily_oee(
    day_shift: Optional[ShiftProductionRecord],
    night_shift: Optional[ShiftProductionRecord],
    tact_time_seconds: Number,
    machine_id: Optional[str] = None,
    production_date: Optional[date] = None
) -> DailyProductionSummary:
    """
    Calculate one machine-day's OEE from its two shift records.

    Shifts marked off (or passed as None) are excluded from every total,
    including the operating minutes that set planned capacity.

    Args:
        day_shift: DAY shift record, or None
        night_shift: NIGHT shift record, or None
        tact_time_seconds: Design cycle time; <= 0 or missing means no capacity
        machine_id: Machine the summary is for (defaults to the shift records')
        production_date: Production date (defaults to the shift records')

    Returns:
        DailyProductionSummary with totals and ratios

    Examples:
        >>> day = ShiftProductionRecord('M1', '2024-03-01', 'DAY',
        ...     actual_production=480, defect_quantity=10, operating_minutes=720,
        ...     downtime_entries=[DowntimeEntry(None, duration_minutes=60, reason='PM')])
        >>> night = ShiftProductionRecord('M1', '2024-03-01', 'NIGHT', is_off=True)
        >>> summary = compute_daily_oee(day, night, 90)
        >>> summary.planned_capacity
        480
        >>> print(f"OEE: {summary.oee:.1%}")
        OEE: 89.8%
    """
    active_shifts = [s for s in (day_shift, night_shift) if s is not None and not s.is_off]

    total_production = sum(s.actual_production for s in active_shifts)
    total_defects = sum(s.defect_quantity for s in active_shifts)
    total_good = sum(s.good_quantity for s in active_shifts)
    total_downtime = sum(s.total_downtime_minutes for s in active_shifts)
    total_operating = sum(s.operating_minutes for s in active_shifts)

    tact = _safe_tact_time(tact_time_seconds)
    capacity = calculate_capacity(total_operating, tact)

    availability = calculate_availability(total_operating, total_downtime)
    performance = calculate_performance(total_production, capacity)
    quality = calculate_quality(total_production, total_good)
    oee = calculate_oee(availability, performance, quality)

    if machine_id is None:
        present = next((s for s in (day_shift, night_shift) if s is not None), None)
        machine_id = present.machine_id if present else ""
    if production_date is None:
        production_date = next(
            (s.date for s in (day_shift, night_shift) if s is not None and s.date is not None),
            None
        )

    return DailyProductionSummary(
        machine_id=machine_id,
        date=production_date,
        day_shift=day_shift,
        night_shift=night_shift,
        total_production=total_production,
        total_defects=total_defects,
        total_good=total_good,
        total_downtime_minutes=total_downtime,
        total_operating_minutes=total_operating,
        planned_capacity=capacity,
        tact_time_seconds=tact,
        availability=availability,
        performance=performance,
        quality=quality,
        oee=oee,
    )


# ============================================================
# RUNTIME-BASED OEE
# ============================================================

def calculate_ideal_runtime(output_qty: Number, tact_time_seconds: Number) -> float:
    """
    Time the output would take at design cycle time.

    Returns:
        Minutes (0.0 for invalid tact time)
    """
    tact = _safe_tact_time(tact_time_seconds)
    if tact <= 0:
        return 0.0
    return non_negative(output_qty) * tact / 60.0


def calculate_planned_runtime(shift_hours: Number = 12, planned_break_minutes: Number = 60) -> float:
    """Planned runtime of a shift in minutes, never negative."""
    return max(0.0, non_negative(shift_hours) * 60 - non_negative(planned_break_minutes))


def calculate_runtime_oee(
    planned_runtime: Number,
    actual_runtime: Number,
    ideal_runtime: Number,
    output_qty: Number,
    defect_qty: Number
) -> OEEMetrics:
    """
    Calculate OEE from runtimes instead of shift counts.

    - Availability = actual runtime / planned runtime (capped at 1)
    - Performance  = ideal runtime / actual runtime (capped at 1)
    - Quality      = good units / output (0 when there is no output)

    Args:
        planned_runtime: Planned operating time (minutes)
        actual_runtime: Time actually running (minutes)
        ideal_runtime: Output × tact time (minutes)
        output_qty: Units produced
        defect_qty: Defective units

    Returns:
        OEEMetrics with the inputs carried through
    """
    planned = non_negative(planned_runtime)
    actual = non_negative(actual_runtime)
    ideal = non_negative(ideal_runtime)
    output = int(non_negative(output_qty))
    defects = int(non_negative(defect_qty))

    availability = _clamp_ratio(actual / planned) if planned > 0 else 0.0
    performance = _clamp_ratio(ideal / actual) if actual > 0 else 0.0
    quality = _clamp_ratio(max(0, output - defects) / output) if output > 0 else 0.0

    return OEEMetrics(
        availability=availability,
        performance=performance,
        quality=quality,
        oee=calculate_oee(availability, performance, quality),
        actual_runtime=actual,
        planned_runtime=planned,
        ideal_runtime=ideal,
        output_qty=output,
        defect_qty=defects,
    )


def calculate_actual_runtime_from_logs(
    machine_logs: List[Dict],
    start_time: datetime,
    end_time: datetime,
    normal_state: str = NORMAL_OPERATION
) -> float:
    """
    Minutes of normal operation within a window, from machine state logs.

    Each log is a dict with 'state', 'start_time' and optional 'end_time';
    a log without an end time is still running and counts up to `end_time`.

    Args:
        machine_logs: State log rows
        start_time: Window start
        end_time: Window end
        normal_state: State that counts as running

    Returns:
        Runtime in minutes
    """
    total_runtime = 0.0

    for log in machine_logs:
        if log.get('state') != normal_state:
            continue
        log_start = parse_datetime(log.get('start_time'))
        log_end = parse_datetime(log.get('end_time')) or end_time
        total_runtime += overlap_minutes(log_start, log_end, start_time, end_time)

    return total_runtime
