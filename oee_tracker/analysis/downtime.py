"""
Downtime Analyzer
Groups downtime intervals by cause, ranks causes by lost time and builds
the cumulative (Pareto) curve.

Entries tagged with the normal-operation state are not downtime and are
excluded from every analysis here, as are entries without any duration.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from oee_tracker.calculations.records import DowntimeEntry
from oee_tracker.config import EngineConfig, resolve_config

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = ['cause', 'duration_minutes', 'machine_id', 'start_time', 'date']


@dataclass(frozen=True)
class DowntimeRanking:
    """One row of the downtime Pareto table"""
    cause: str
    duration_minutes: float
    occurrence_count: int
    percentage_of_total: float
    cumulative_percentage: float
    avg_duration: float = 0.0
    min_duration: float = 0.0
    max_duration: float = 0.0
    affected_machines: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cause': self.cause,
            'duration_minutes': self.duration_minutes,
            'occurrence_count': self.occurrence_count,
            'percentage_of_total': self.percentage_of_total,
            'cumulative_percentage': self.cumulative_percentage,
            'avg_duration': self.avg_duration,
            'min_duration': self.min_duration,
            'max_duration': self.max_duration,
            'affected_machines': self.affected_machines,
        }


def downtime_to_frame(
    entries: Iterable[DowntimeEntry],
    config: Optional[EngineConfig] = None
) -> pd.DataFrame:
    """
    Convert downtime entries to a DataFrame of analyzable downtime.

    Normal-operation entries and entries with zero duration are dropped.

    Returns:
        DataFrame with columns: cause, duration_minutes, machine_id, start_time, date
    """
    config = resolve_config(config)
    rows = []
    skipped = 0
    for entry in entries:
        if entry.cause == config.normal_operation_state or entry.duration_minutes <= 0:
            skipped += 1
            continue
        rows.append({
            'cause': entry.cause,
            'duration_minutes': float(entry.duration_minutes),
            'machine_id': entry.machine_id,
            'start_time': entry.start_time,
            'date': entry.start_time.date() if entry.start_time else None,
        })

    if skipped:
        logger.debug(f"Skipped {skipped} normal-operation or zero-length downtime entries")

    if not rows:
        return pd.DataFrame(columns=ENTRY_COLUMNS)
    return pd.DataFrame(rows, columns=ENTRY_COLUMNS)


def analyze_downtime(
    entries: Iterable[DowntimeEntry],
    config: Optional[EngineConfig] = None
) -> List[DowntimeRanking]:
    """
    Rank downtime causes by total duration.

    Ties in duration are broken by occurrence count (more first), then by
    cause name. The cumulative percentage of the last row is exactly 100
    whenever any downtime was recorded.

    Args:
        entries: Downtime entries
        config: Engine configuration (normal-operation state name)

    Returns:
        DowntimeRanking rows, descending by duration

    Example:
        >>> rankings = analyze_downtime(entries)
        >>> [(r.cause, round(r.cumulative_percentage, 1)) for r in rankings]
        [('MAINTENANCE', 54.5), ('TOOL_CHANGE', 100.0)]
    """
    df = downtime_to_frame(entries, config)
    if df.empty:
        return []

    grouped = df.groupby('cause').agg(
        duration_minutes=('duration_minutes', 'sum'),
        occurrence_count=('duration_minutes', 'count'),
        avg_duration=('duration_minutes', 'mean'),
        min_duration=('duration_minutes', 'min'),
        max_duration=('duration_minutes', 'max'),
        affected_machines=('machine_id', 'nunique'),
    ).reset_index()

    grouped = grouped.sort_values(
        ['duration_minutes', 'occurrence_count', 'cause'],
        ascending=[False, False, True]
    ).reset_index(drop=True)

    cumulative = grouped['duration_minutes'].cumsum().to_numpy()
    total = cumulative[-1]
    if total > 0:
        grouped['percentage_of_total'] = grouped['duration_minutes'] / total * 100
        grouped['cumulative_percentage'] = cumulative / total * 100
    else:
        grouped['percentage_of_total'] = 0.0
        grouped['cumulative_percentage'] = 0.0

    rankings = [
        DowntimeRanking(
            cause=str(row.cause),
            duration_minutes=float(row.duration_minutes),
            occurrence_count=int(row.occurrence_count),
            percentage_of_total=float(row.percentage_of_total),
            cumulative_percentage=float(row.cumulative_percentage),
            avg_duration=float(row.avg_duration),
            min_duration=float(row.min_duration),
            max_duration=float(row.max_duration),
            affected_machines=int(row.affected_machines),
        )
        for row in grouped.itertuples(index=False)
    ]

    logger.info(f"Ranked {len(rankings)} downtime causes totalling {total:.0f} minutes")
    return rankings


def top_contributors(rankings: List[DowntimeRanking], threshold: float = 80.0) -> List[DowntimeRanking]:
    """
    The "vital few": leading causes up to the one that reaches `threshold` percent.
    """
    selected = []
    for ranking in rankings:
        selected.append(ranking)
        if ranking.cumulative_percentage >= threshold:
            break
    return selected


def summarize_downtime(
    entries: Iterable[DowntimeEntry],
    config: Optional[EngineConfig] = None
) -> Dict[str, float]:
    """
    Headline downtime figures.

    Returns:
        Dictionary with total_minutes, total_hours, event_count and
        avg_minutes_per_event
    """
    df = downtime_to_frame(entries, config)
    total = float(df['duration_minutes'].sum()) if not df.empty else 0.0
    events = len(df)
    return {
        'total_minutes': total,
        'total_hours': total / 60.0,
        'event_count': events,
        'avg_minutes_per_event': total / events if events else 0.0,
    }


def analyze_downtime_by_machine(
    entries: Iterable[DowntimeEntry],
    config: Optional[EngineConfig] = None
) -> List[Dict[str, Any]]:
    """
    Downtime totals per machine, most affected machine first.

    Each row: machine_id, total_minutes, event_count, avg_minutes, top_cause.
    Entries without a machine ID are grouped under 'UNKNOWN'.
    """
    df = downtime_to_frame(entries, config)
    if df.empty:
        return []

    df['machine_id'] = df['machine_id'].fillna('UNKNOWN').astype(str)

    results = []
    for machine_id, machine_df in df.groupby('machine_id'):
        by_cause = machine_df.groupby('cause')['duration_minutes'].sum()
        top = by_cause.sort_values(ascending=False, kind='mergesort')
        results.append({
            'machine_id': machine_id,
            'total_minutes': float(machine_df['duration_minutes'].sum()),
            'event_count': len(machine_df),
            'avg_minutes': float(machine_df['duration_minutes'].mean()),
            'top_cause': str(top.index[0]),
        })

    results.sort(key=lambda r: (-r['total_minutes'], r['machine_id']))
    return results


def daily_downtime_trend(
    entries: Iterable[DowntimeEntry],
    config: Optional[EngineConfig] = None
) -> List[Dict[str, Any]]:
    """
    Downtime per calendar date of the entry start, ascending.

    Each row: date, total_minutes, event_count, by_cause (minutes per cause).
    Entries without a start time are left out.
    """
    df = downtime_to_frame(entries, config)
    df = df[df['date'].notna()] if not df.empty else df
    if df.empty:
        return []

    trend = []
    for day, day_df in df.groupby('date', sort=True):
        by_cause = day_df.groupby('cause')['duration_minutes'].sum()
        trend.append({
            'date': day,
            'total_minutes': float(day_df['duration_minutes'].sum()),
            'event_count': len(day_df),
            'by_cause': {str(cause): float(minutes) for cause, minutes in by_cause.items()},
        })
    return trend


def hourly_downtime_distribution(
    entries: Iterable[DowntimeEntry],
    config: Optional[EngineConfig] = None
) -> List[float]:
    """
    Downtime minutes by hour of day the interval started.

    Returns:
        24 values, index = hour (0-23)
    """
    hours = np.zeros(24)
    df = downtime_to_frame(entries, config)
    for start_time, minutes in zip(df['start_time'], df['duration_minutes']):
        if start_time is None or pd.isna(start_time):
            continue
        hours[start_time.hour] += minutes
    return hours.tolist()
