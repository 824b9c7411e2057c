"""
Date Filtering Utilities

Tolerant date parsing and functions to filter DataFrames and record lists
by an inclusive calendar date range.
"""

import logging
from datetime import date, datetime
from typing import Any, List, Optional

import pandas as pd
from dateutil import parser as dateutil_parser

from .models import DateRange

logger = logging.getLogger(__name__)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp from a datetime, pandas Timestamp, date, or string.

    Args:
        value: Value to parse

    Returns:
        datetime, or None if the value is empty or malformed
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return dateutil_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            pass
        try:
            return dateutil_parser.parse(value.strip())
        except (ValueError, OverflowError):
            logger.debug(f"Unparseable timestamp: {value!r}")
            return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return None


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a calendar date. Timestamps are truncated to their date part.

    Returns:
        date, or None if the value is empty or malformed

    Example:
        >>> parse_date("2024-03-01")
        datetime.date(2024, 3, 1)
        >>> parse_date("not a date") is None
        True
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None


def build_date_range(start: Any = None, end: Any = None) -> DateRange:
    """
    Build a DateRange from loosely typed bounds.

    A malformed bound is treated as open rather than rejected.
    """
    start_date = parse_date(start)
    end_date = parse_date(end)
    if start is not None and start_date is None:
        logger.debug(f"Ignoring malformed range start: {start!r}")
    if end is not None and end_date is None:
        logger.debug(f"Ignoring malformed range end: {end!r}")
    return DateRange(start_date, end_date)


def filter_dataframe_by_date_range(
    df: pd.DataFrame,
    date_range: DateRange,
    date_column: str = 'date'
) -> pd.DataFrame:
    """
    Filter DataFrame to only include rows whose date falls within the range.

    Rows with an unparseable date are dropped.

    Args:
        df: DataFrame with a date column
        date_range: Inclusive DateRange
        date_column: Name of the column to filter on

    Returns:
        Filtered copy of the DataFrame

    Example:
        >>> window = DateRange(date(2024, 3, 1), date(2024, 3, 7))
        >>> week_df = filter_dataframe_by_date_range(records_df, window)
    """
    if df.empty:
        return df

    if date_column not in df.columns:
        raise ValueError(
            f"Column '{date_column}' not found in DataFrame. "
            f"Available columns: {list(df.columns)}"
        )

    dates = df[date_column].apply(parse_date)
    mask = dates.apply(lambda d: d is not None and date_range.contains(d))

    return df[mask].copy()


def filter_records_by_date_range(records: List[Any], date_range: DateRange) -> List[Any]:
    """
    Filter records (anything with a `date` attribute) by an inclusive date range.

    Records whose date is missing or malformed are excluded.
    """
    filtered = []
    for record in records:
        record_date = parse_date(getattr(record, 'date', None))
        if record_date is not None and date_range.contains(record_date):
            filtered.append(record)
    return filtered


def overlap_minutes(
    start: Optional[datetime],
    end: Optional[datetime],
    window_start: Optional[datetime],
    window_end: Optional[datetime]
) -> float:
    """
    Calculate overlap between an interval and a window.

    Returns:
        Overlap duration in minutes (0.0 if no overlap or any bound is None)
    """
    if not all([start, end, window_start, window_end]):
        return 0.0

    overlap_start = max(start, window_start)
    overlap_end = min(end, window_end)

    if overlap_end > overlap_start:
        return (overlap_end - overlap_start).total_seconds() / 60.0

    return 0.0
