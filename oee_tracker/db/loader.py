"""
Dashboard Source Loader

Fetches every source a dashboard needs in parallel. Each source degrades
on its own: a failed or timed-out fetch yields an empty DataFrame, a
warning, and an entry in DashboardSources.failed_sources.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import pandas as pd

from . import fetchers as db_fetchers
from oee_tracker.config import EngineConfig, resolve_config
from oee_tracker.time_windows.models import DateRange

logger = logging.getLogger(__name__)

SOURCE_NAMES = ['machines', 'production', 'downtime', 'status_descriptions']

# fetcher(date_range, machine_id, config) -> DataFrame
SourceFetcher = Callable[[DateRange, Optional[str], EngineConfig], pd.DataFrame]


@dataclass
class DashboardSources:
    """Raw DataFrames for one dashboard request"""
    machines: pd.DataFrame = field(default_factory=pd.DataFrame)
    production: pd.DataFrame = field(default_factory=pd.DataFrame)
    downtime: pd.DataFrame = field(default_factory=pd.DataFrame)
    status_descriptions: pd.DataFrame = field(default_factory=pd.DataFrame)
    failed_sources: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_sources)


def default_fetchers() -> Dict[str, SourceFetcher]:
    """Database-backed fetchers; errors propagate so the loader can record them."""
    return {
        'machines': lambda date_range, machine_id, config: db_fetchers.fetch_machines(
            raise_errors=True
        ),
        'production': lambda date_range, machine_id, config: db_fetchers.fetch_production_records(
            date_range, machine_id, config.fetch_limit, raise_errors=True
        ),
        'downtime': lambda date_range, machine_id, config: db_fetchers.fetch_downtime_logs(
            date_range, machine_id, config.fetch_limit, config.normal_operation_state,
            raise_errors=True
        ),
        'status_descriptions': lambda date_range, machine_id, config: db_fetchers.fetch_status_descriptions(
            raise_errors=True
        ),
    }


def load_dashboard_sources(
    date_range: DateRange,
    machine_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    fetchers: Optional[Dict[str, SourceFetcher]] = None
) -> DashboardSources:
    """
    Fetch all dashboard sources concurrently.

    Args:
        date_range: Inclusive date range of the request
        machine_id: Restrict production and downtime to one machine
        config: Engine configuration (fetch limit and timeout)
        fetchers: Fetcher per source name; sources without one are left empty.
            Defaults to the database-backed fetchers.

    Returns:
        DashboardSources with one DataFrame per source

    Example:
        >>> sources = load_dashboard_sources(DateRange.preset('week'))
        >>> sources.failed_sources
        []
    """
    config = resolve_config(config)
    source_fetchers = fetchers if fetchers is not None else default_fetchers()
    start_time = time.time()

    results: Dict[str, pd.DataFrame] = {}
    failed: List[str] = []

    executor = ThreadPoolExecutor(max_workers=max(len(source_fetchers), 1))
    try:
        future_to_name = {
            executor.submit(fetch, date_range, machine_id, config): name
            for name, fetch in source_fetchers.items()
        }
        done, not_done = wait(future_to_name, timeout=config.fetch_timeout_seconds)

        for future in done:
            name = future_to_name[future]
            try:
                result = future.result()
                results[name] = result if isinstance(result, pd.DataFrame) else pd.DataFrame(result)
                logger.info(f"Source '{name}' loaded: {len(results[name])} rows")
            except Exception as e:
                logger.warning(f"Source '{name}' failed: {e}")
                failed.append(name)

        for future in not_done:
            name = future_to_name[future]
            future.cancel()
            logger.warning(f"Source '{name}' timed out after {config.fetch_timeout_seconds}s")
            failed.append(name)
    finally:
        executor.shutdown(wait=False)

    elapsed = time.time() - start_time
    logger.info(f"Loaded dashboard sources in {elapsed:.2f}s ({len(failed)} failed)")

    return DashboardSources(
        **{name: results.get(name, pd.DataFrame()) for name in SOURCE_NAMES},
        failed_sources=sorted(failed),
    )
