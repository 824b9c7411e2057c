"""
Time Window Models

Calendar date ranges for dashboard queries and localized shift windows:
- DAY shift (default 08:00 - 20:00)
- NIGHT shift (default 20:00 - 08:00 next day)
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import pytz

from oee_tracker.config import EngineConfig, resolve_config


PRESET_PERIOD_DAYS = {
    'week': 7,
    'month': 30,
    'quarter': 90,
}


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive calendar date range.

    Either bound may be None, meaning the range is open on that side.
    A range whose start is after its end contains no dates.
    """
    start: Optional[date] = None
    end: Optional[date] = None

    def contains(self, day: date) -> bool:
        """Check if a date falls within the range (bounds included)"""
        if isinstance(day, datetime):
            day = day.date()
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True

    @property
    def is_empty(self) -> bool:
        return self.start is not None and self.end is not None and self.start > self.end

    @property
    def days(self) -> Optional[int]:
        """Number of calendar days covered, or None for an open range"""
        if self.start is None or self.end is None:
            return None
        return max(0, (self.end - self.start).days + 1)

    def iter_dates(self) -> List[date]:
        """All dates in a closed range, ascending"""
        if self.days is None:
            raise ValueError("Cannot enumerate dates of an open range")
        return [self.start + timedelta(days=i) for i in range(self.days)]

    @classmethod
    def preset(cls, period: str, today: Optional[date] = None) -> 'DateRange':
        """
        Create a range ending today and reaching back a preset number of days.

        Args:
            period: 'week' (7 days), 'month' (30 days) or 'quarter' (90 days)
            today: End of the range (defaults to date.today())

        Returns:
            DateRange from `today - N days` to `today`

        Raises:
            ValueError: If period is not recognized
        """
        if period not in PRESET_PERIOD_DAYS:
            raise ValueError(
                f"Unknown period: '{period}'. "
                f"Valid options: {list(PRESET_PERIOD_DAYS)}"
            )
        end = today or date.today()
        return cls(end - timedelta(days=PRESET_PERIOD_DAYS[period]), end)

    def __repr__(self) -> str:
        start = self.start.isoformat() if self.start else "..."
        end = self.end.isoformat() if self.end else "..."
        return f"DateRange({start} → {end})"


@dataclass(frozen=True)
class ShiftWindow:
    """A localized shift period for one production day."""
    shift: str
    start: datetime
    end: datetime
    description: str = ""

    def __post_init__(self):
        """Validate shift window"""
        if self.end <= self.start:
            raise ValueError(
                f"End time ({self.end}) must be after start time ({self.start})"
            )

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60.0

    def contains(self, timestamp: datetime) -> bool:
        """Check if timestamp falls within this shift (end exclusive)"""
        return self.start <= timestamp < self.end

    def __repr__(self) -> str:
        return (
            f"ShiftWindow({self.shift}: {self.start.strftime('%Y-%m-%d %H:%M')} → "
            f"{self.end.strftime('%Y-%m-%d %H:%M')})"
        )


def _parse_clock(value: str) -> time:
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid shift time: '{value}'. Expected HH:MM")


def _localize(tz, day: date, clock: time) -> datetime:
    return tz.localize(datetime(day.year, day.month, day.day, clock.hour, clock.minute))


def shift_windows(day: date, config: Optional[EngineConfig] = None) -> Dict[str, ShiftWindow]:
    """
    Build the DAY and NIGHT windows for a production day.

    A shift whose end clock time is not after its start clock time ends on
    the following calendar day.

    Args:
        day: Production date
        config: Engine configuration (shift times, timezone)

    Returns:
        Dictionary mapping 'DAY' and 'NIGHT' to ShiftWindow
    """
    config = resolve_config(config)
    tz = pytz.timezone(config.timezone)

    windows = {}
    for shift, start_value, end_value in [
        ('DAY', config.day_shift_start, config.day_shift_end),
        ('NIGHT', config.night_shift_start, config.night_shift_end),
    ]:
        start_clock = _parse_clock(start_value)
        end_clock = _parse_clock(end_value)
        end_day = day if end_clock > start_clock else day + timedelta(days=1)
        windows[shift] = ShiftWindow(
            shift=shift,
            start=_localize(tz, day, start_clock),
            end=_localize(tz, end_day, end_clock),
            description=f"{shift.lower()} shift {day.isoformat()}",
        )
    return windows


def _as_local(timestamp: datetime, config: EngineConfig) -> datetime:
    tz = pytz.timezone(config.timezone)
    if timestamp.tzinfo is None:
        return tz.localize(timestamp)
    return timestamp.astimezone(tz)


def get_current_shift(
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None
) -> Optional[ShiftWindow]:
    """
    Find the shift window containing `now`.

    A night shift started yesterday is still current in the early morning.
    Naive timestamps are interpreted in the configured timezone.

    Returns:
        The containing ShiftWindow, or None if `now` falls between shifts
    """
    config = resolve_config(config)
    now = _as_local(now or datetime.now(pytz.timezone(config.timezone)), config)
    today = now.date()

    candidates = [
        shift_windows(today - timedelta(days=1), config)['NIGHT'],
        shift_windows(today, config)['DAY'],
        shift_windows(today, config)['NIGHT'],
    ]
    for window in candidates:
        if window.contains(now):
            return window
    return None


def minutes_until_shift_end(
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None
) -> int:
    """Whole minutes left in the current shift (0 outside any shift)."""
    config = resolve_config(config)
    now = _as_local(now or datetime.now(pytz.timezone(config.timezone)), config)
    window = get_current_shift(now, config)
    if window is None:
        return 0
    return max(0, int((window.end - now).total_seconds() // 60))


def should_notify_shift_end(
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
    lead_minutes: int = 15
) -> bool:
    """True during the last `lead_minutes` of a shift."""
    remaining = minutes_until_shift_end(now, config)
    return 0 < remaining <= lead_minutes


def planned_operating_minutes(
    shift: str,
    config: Optional[EngineConfig] = None,
    day: Optional[date] = None
) -> float:
    """
    Planned operating minutes of a shift: window length minus planned break.

    Args:
        shift: 'DAY' or 'NIGHT'
        config: Engine configuration
        day: Production date (defaults to today; matters only across DST changes)

    Returns:
        Operating minutes, never negative
    """
    config = resolve_config(config)
    shift = shift.upper()
    windows = shift_windows(day or date.today(), config)
    if shift not in windows:
        raise ValueError(f"Invalid shift: '{shift}'. Must be one of: {list(windows)}")
    return max(0.0, windows[shift].duration_minutes - config.break_time_minutes)
