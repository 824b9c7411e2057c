"""
Production Record Models

Input data contracts for the OEE engine: machines from the registry, downtime
entries, operator-entered shift records, and persisted production rows.

Invalid quantities are clamped rather than rejected so a bad entry never
stops the pipeline:
- Negative counts and durations become 0
- Missing or non-positive tact time means "no capacity"
- Unparseable dates become None and are dropped by date filters
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import List, Optional, Union

from oee_tracker.time_windows.filters import parse_date, parse_datetime

logger = logging.getLogger(__name__)


VALID_SHIFTS = ['DAY', 'NIGHT']

# Persisted production rows use shift codes instead of names
SHIFT_CODES = {'DAY': 'A', 'NIGHT': 'B'}
SHIFT_NAMES = {code: name for name, code in SHIFT_CODES.items()}

NORMAL_OPERATION = 'NORMAL_OPERATION'

MACHINE_STATES = [
    NORMAL_OPERATION,
    'MAINTENANCE',
    'MODEL_CHANGE',
    'PLANNED_STOP',
    'PROGRAM_CHANGE',
    'TOOL_CHANGE',
    'TEMPORARY_STOP',
]


def normalize_shift(shift: str) -> str:
    """
    Normalize a shift name or persisted shift code to 'DAY' or 'NIGHT'.

    Raises:
        ValueError: If shift is not recognized
    """
    value = str(shift).strip().upper()
    if value in SHIFT_NAMES:
        return SHIFT_NAMES[value]
    if value not in VALID_SHIFTS:
        raise ValueError(
            f"Invalid shift: '{shift}'. "
            f"Must be one of: {VALID_SHIFTS + list(SHIFT_NAMES)}"
        )
    return value


def non_negative(value, default: float = 0.0) -> float:
    """Coerce a quantity to a finite, non-negative float."""
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return max(0.0, number)


def non_negative_int(value) -> int:
    return int(non_negative(value))


@dataclass
class Machine:
    """Machine as reported by the external registry (read only)."""
    id: str
    tact_time_seconds: float = 0.0   # design cycle time; <= 0 means unknown
    location: str = ""
    is_active: bool = True
    current_state: Optional[str] = None
    name: str = ""

    def __post_init__(self):
        self.id = str(self.id)
        self.tact_time_seconds = non_negative(self.tact_time_seconds)

    @property
    def has_valid_tact_time(self) -> bool:
        return self.tact_time_seconds > 0


@dataclass(frozen=True)
class DowntimeEntry:
    """
    A recorded interval where a machine was not in normal operation.

    Entries are immutable once recorded. The cause used for analysis is the
    state tag when present, otherwise the free-text reason.
    """
    start_time: Optional[datetime]
    end_time: Optional[datetime] = None
    duration_minutes: float = 0.0
    reason: str = ""
    state: Optional[str] = None
    id: Optional[str] = None
    machine_id: Optional[str] = None
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'start_time', parse_datetime(self.start_time))
        object.__setattr__(self, 'end_time', parse_datetime(self.end_time))
        object.__setattr__(self, 'duration_minutes', non_negative(self.duration_minutes))
        object.__setattr__(self, 'reason', (self.reason or "").strip())

    @property
    def cause(self) -> str:
        """Cause used for grouping ('UNKNOWN' when untagged)."""
        if self.state:
            return str(self.state)
        return self.reason or "UNKNOWN"

    @classmethod
    def from_interval(
        cls,
        start_time: Union[datetime, str],
        end_time: Optional[Union[datetime, str]] = None,
        reason: str = "",
        state: Optional[str] = None,
        now: Optional[datetime] = None,
        **kwargs
    ) -> 'DowntimeEntry':
        """
        Create an entry from a start/end interval.

        Duration is counted in whole elapsed minutes. An open interval
        (no end time) runs until `now`.

        Args:
            start_time: Interval start
            end_time: Interval end, or None for "still down"
            reason: Free-text reason or category
            state: Optional machine state tag
            now: Reference time for open intervals (defaults to datetime.now())

        Returns:
            DowntimeEntry with derived duration
        """
        start = parse_datetime(start_time)
        end = parse_datetime(end_time)
        if end is None:
            end = now if now is not None else datetime.now(tz=start.tzinfo if start else None)

        duration = 0.0
        if start is not None and end is not None:
            duration = float(max(0, math.floor((end - start).total_seconds() / 60.0)))

        return cls(
            start_time=start,
            end_time=end,
            duration_minutes=duration,
            reason=reason,
            state=state,
            **kwargs
        )


@dataclass
class ShiftProductionRecord:
    """
    One machine's production for one shift, as entered by the operator.

    good_quantity and total_downtime_minutes are derived, never stored.
    """
    machine_id: str
    date: Optional[date]
    shift: str
    operator: str = ""
    actual_production: int = 0
    defect_quantity: int = 0
    downtime_entries: List[DowntimeEntry] = field(default_factory=list)
    operating_minutes: float = 720.0
    is_off: bool = False

    def __post_init__(self):
        self.machine_id = str(self.machine_id)
        self.shift = normalize_shift(self.shift)
        self.date = parse_date(self.date)
        self.actual_production = non_negative_int(self.actual_production)
        self.defect_quantity = non_negative_int(self.defect_quantity)
        self.operating_minutes = non_negative(self.operating_minutes)
        self.downtime_entries = list(self.downtime_entries or [])
        self.is_off = bool(self.is_off)

    @property
    def good_quantity(self) -> int:
        return max(0, self.actual_production - self.defect_quantity)

    @property
    def total_downtime_minutes(self) -> float:
        return sum(entry.duration_minutes for entry in self.downtime_entries)

    def add_downtime(self, entry: DowntimeEntry) -> 'ShiftProductionRecord':
        """Return a copy of this record with `entry` appended."""
        return replace(self, downtime_entries=self.downtime_entries + [entry])

    def remove_downtime(self, entry_id: str) -> 'ShiftProductionRecord':
        """Return a copy of this record without the entry whose id is `entry_id`."""
        remaining = [e for e in self.downtime_entries if e.id != entry_id]
        if len(remaining) == len(self.downtime_entries):
            logger.warning(f"Downtime entry {entry_id} not found on {self.machine_id} {self.shift}")
        return replace(self, downtime_entries=remaining)

    def to_dict(self) -> dict:
        """Convert to dictionary for display and audit"""
        return {
            'machine_id': self.machine_id,
            'date': self.date.isoformat() if self.date else None,
            'shift': self.shift,
            'operator': self.operator,
            'actual_production': self.actual_production,
            'defect_quantity': self.defect_quantity,
            'good_quantity': self.good_quantity,
            'total_downtime_minutes': self.total_downtime_minutes,
            'downtime_entry_count': len(self.downtime_entries),
            'operating_minutes': self.operating_minutes,
            'is_off': self.is_off,
        }


@dataclass
class ProductionRecord:
    """
    A production row as persisted by the production store.

    Ratios were computed when the row was saved; aggregate_from_persisted()
    trusts them instead of recomputing from counts.
    """
    machine_id: str
    date: Optional[date]
    shift: str
    output_qty: int = 0
    defect_qty: int = 0
    planned_runtime: float = 0.0
    actual_runtime: float = 0.0
    ideal_runtime: float = 0.0
    availability: float = 0.0
    performance: float = 0.0
    quality: float = 0.0
    oee: float = 0.0
    record_id: Optional[str] = None

    def __post_init__(self):
        self.machine_id = str(self.machine_id)
        self.shift = normalize_shift(self.shift)
        self.date = parse_date(self.date)
        self.output_qty = non_negative_int(self.output_qty)
        self.defect_qty = non_negative_int(self.defect_qty)
        self.planned_runtime = non_negative(self.planned_runtime)
        self.actual_runtime = non_negative(self.actual_runtime)
        self.ideal_runtime = non_negative(self.ideal_runtime)
        self.availability = non_negative(self.availability)
        self.performance = non_negative(self.performance)
        self.quality = non_negative(self.quality)
        self.oee = non_negative(self.oee)
