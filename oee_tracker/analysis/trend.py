"""
Trend Aggregator
Buckets dated OEE metrics by calendar date into an ordered time series.

- Records outside the inclusive [start, end] range are dropped
- DAY and NIGHT records of the same date share one bucket
- Dates without records are absent, never zero-filled
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from oee_tracker.calculations.oee import _clamp_ratio
from oee_tracker.config import EngineConfig, resolve_config
from oee_tracker.time_windows.filters import build_date_range, filter_dataframe_by_date_range
from .daily import METRIC_COLUMNS, DatedMetrics, dated_metrics_to_frame

logger = logging.getLogger(__name__)

VALID_PERIODS = ['daily', 'weekly', 'monthly', 'yearly']


@dataclass(frozen=True)
class TrendPoint:
    """One point of an OEE time series"""
    date: date
    availability: float
    performance: float
    quality: float
    oee: float
    record_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date,
            'availability': self.availability,
            'performance': self.performance,
            'quality': self.quality,
            'oee': self.oee,
            'record_count': self.record_count,
        }


def _bucket_ratios(bucket: pd.DataFrame, weight_by_volume: bool) -> Dict[str, float]:
    weights = bucket['output_qty'].astype(float).to_numpy() if weight_by_volume else None
    if weights is not None and weights.sum() <= 0:
        weights = None

    ratios = {}
    for name in METRIC_COLUMNS:
        values = bucket[name].astype(float).to_numpy()
        mean = np.average(values, weights=weights) if weights is not None else values.mean()
        ratios[name] = _clamp_ratio(mean)
    return ratios


def build_trend(
    records: Iterable[DatedMetrics],
    start_date: Any = None,
    end_date: Any = None,
    config: Optional[EngineConfig] = None,
    *,
    weight_by_volume: Optional[bool] = None
) -> List[TrendPoint]:
    """
    Build a daily OEE time series.

    Args:
        records: Dated metrics from compute_from_raw() or aggregate_from_persisted()
        start_date: First date to include (None or malformed = open)
        end_date: Last date to include (None or malformed = open)
        config: Engine configuration providing the weighting default
        weight_by_volume: Weight ratios by output_qty (overrides config)

    Returns:
        One TrendPoint per distinct date with records, ascending by date

    Example:
        >>> points = build_trend(dated, date(2024, 3, 1), date(2024, 3, 3))
        >>> [p.date.day for p in points]
        [1, 3]
    """
    config = resolve_config(config)
    if weight_by_volume is None:
        weight_by_volume = config.weight_by_volume

    df = dated_metrics_to_frame(records)
    if df.empty:
        return []

    df = filter_dataframe_by_date_range(df, build_date_range(start_date, end_date))
    if df.empty:
        logger.info("No records in trend window")
        return []

    points = []
    for bucket_date, bucket in df.groupby('date', sort=True):
        ratios = _bucket_ratios(bucket, weight_by_volume)
        points.append(TrendPoint(date=bucket_date, record_count=len(bucket), **ratios))

    logger.info(f"Built trend with {len(points)} points from {len(df)} records")
    return points


def _period_start(day: date, period: str) -> date:
    if period == 'daily':
        return day
    if period == 'weekly':
        # Weeks start on Sunday
        return day - timedelta(days=(day.weekday() + 1) % 7)
    if period == 'monthly':
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def aggregate_by_period(points: Iterable[TrendPoint], period: str = 'daily') -> List[TrendPoint]:
    """
    Rebucket daily trend points into coarser periods.

    Each bucket is dated by its first day (Sunday for weeks) and its ratios
    are the unweighted mean of the points it contains.

    Args:
        points: Daily trend points
        period: 'daily', 'weekly', 'monthly' or 'yearly'

    Returns:
        Trend points per period, ascending

    Raises:
        ValueError: If period is not recognized
    """
    if period not in VALID_PERIODS:
        raise ValueError(f"Invalid period: '{period}'. Must be one of: {VALID_PERIODS}")

    buckets: Dict[date, List[TrendPoint]] = {}
    for point in points:
        buckets.setdefault(_period_start(point.date, period), []).append(point)

    result = []
    for bucket_date in sorted(buckets):
        bucket = buckets[bucket_date]
        ratios = {
            name: _clamp_ratio(np.mean([getattr(p, name) for p in bucket]))
            for name in METRIC_COLUMNS
        }
        result.append(TrendPoint(
            date=bucket_date,
            record_count=sum(p.record_count for p in bucket),
            **ratios,
        ))
    return result


def calculate_trend_change(points: List[TrendPoint], metric: str = 'oee') -> float:
    """
    Percent change between the older and the more recent half of a series.

    With an odd number of points the middle one belongs to the recent half.

    Returns:
        (recent_mean - older_mean) / older_mean * 100, or 0.0 with fewer than
        two points or a zero baseline
    """
    if metric not in METRIC_COLUMNS:
        raise ValueError(f"Invalid metric: '{metric}'. Must be one of: {METRIC_COLUMNS}")
    if len(points) < 2:
        return 0.0

    ordered = sorted(points, key=lambda p: p.date)
    middle = len(ordered) // 2
    older = np.mean([getattr(p, metric) for p in ordered[:middle]])
    recent = np.mean([getattr(p, metric) for p in ordered[middle:]])

    if older == 0:
        return 0.0
    return float((recent - older) / older * 100)
