"""
Formatting Utilities

Display helpers for ratios, durations, timestamps and downtime entries, and
validation of dashboard date ranges.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from oee_tracker.calculations.records import DowntimeEntry
from oee_tracker.time_windows.filters import parse_datetime

logger = logging.getLogger(__name__)


def format_percentage(ratio, decimals: int = 1) -> str:
    """
    Format a 0-1 ratio as a percentage string.

    Example:
        >>> format_percentage(0.8976)
        '89.8%'
    """
    if ratio is None or pd.isna(ratio):
        return "-"
    return f"{float(ratio) * 100:.{decimals}f}%"


def format_minutes(minutes) -> str:
    """
    Format a duration in minutes as "Xh Ym" (or "Ym" under an hour).

    Example:
        >>> format_minutes(135)
        '2h 15m'
    """
    if minutes is None or pd.isna(minutes):
        return "-"
    total = max(0, int(round(float(minutes))))
    hours, mins = divmod(total, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_timestamp(value) -> str:
    """
    Format a timestamp as YYYY-MM-DD HH:MM:SS.

    Args:
        value: ISO timestamp string, datetime object, or None

    Returns:
        Formatted timestamp string or empty string if invalid
    """
    parsed = parse_datetime(value)
    if parsed is None:
        return ""
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def format_downtime_entries(entries: Iterable[DowntimeEntry]) -> str:
    """
    Format downtime entries into one readable line.

    Returns:
        "start: cause (N min); ..." or empty string when there are none
    """
    formatted = []
    for entry in entries:
        start = format_timestamp(entry.start_time) or "?"
        formatted.append(f"{start}: {entry.cause} ({entry.duration_minutes:.0f} min)")
    return "; ".join(formatted)


def validate_date_range(
    start: Optional[date],
    end: Optional[date],
    today: Optional[date] = None
) -> Tuple[List[str], List[str], bool]:
    """
    Validate a dashboard date range.

    Args:
        start: First day of the range
        end: Last day of the range
        today: Reference date (defaults to date.today())

    Returns:
        Tuple of (validation_errors, validation_warnings, is_valid)
    """
    validation_errors = []
    validation_warnings = []
    today = today or date.today()

    if start is None or end is None:
        validation_errors.append("Start and end dates are required")
        return validation_errors, validation_warnings, False

    if end < start:
        validation_errors.append("End date must not be before start date")
        return validation_errors, validation_warnings, False

    days = (end - start).days + 1

    if days > 366:
        validation_errors.append("Date range too large (> 1 year) - please select a smaller range")
        return validation_errors, validation_warnings, False

    if days > 90:
        validation_warnings.append(
            f"⚠️ Large date range ({days} days) - results are capped at the fetch limit"
        )

    if start > today:
        validation_errors.append("Start date cannot be in the future")
        return validation_errors, validation_warnings, False

    if end > today:
        validation_warnings.append("⚠️ End date is in the future - current data may be incomplete")

    if start < today - timedelta(days=730):
        validation_warnings.append("⚠️ Data older than 2 years may not be available")

    return validation_errors, validation_warnings, True
