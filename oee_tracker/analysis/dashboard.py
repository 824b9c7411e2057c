"""
Dashboard Assembly
Turns the raw dashboard sources into fleet, trend and downtime figures.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from oee_tracker.calculations.records import DowntimeEntry, Machine
from oee_tracker.config import EngineConfig, resolve_config
from oee_tracker.db.fetchers import (
    frame_to_downtime_entries,
    frame_to_machines,
    frame_to_production_records,
    frame_to_status_descriptions,
)
from oee_tracker.db.loader import DashboardSources, SourceFetcher, load_dashboard_sources
from oee_tracker.time_windows.filters import filter_records_by_date_range
from oee_tracker.time_windows.models import DateRange
from .daily import DatedMetrics, aggregate_from_persisted
from .downtime import DowntimeRanking, analyze_downtime, summarize_downtime
from .fleet import (
    FleetSummary,
    NoMachineDataError,
    aggregate_fleet,
    group_metrics_by_machine,
    summarize_machine_states,
)
from .trend import TrendPoint, build_trend

logger = logging.getLogger(__name__)


@dataclass
class DashboardData:
    """Everything the dashboard renders for one request"""
    date_range: DateRange
    machines: List[Machine]
    fleet: FleetSummary
    trend: List[TrendPoint]
    downtime: List[DowntimeRanking]
    downtime_summary: Dict[str, float]
    machine_states: Dict[str, int]
    records: List[DatedMetrics] = field(default_factory=list)
    status_descriptions: Dict[str, Dict[str, str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def machine_names(self) -> Dict[str, str]:
        return {m.id: m.name or m.id for m in self.machines}

    def status_label(self, state: str) -> str:
        return self.status_descriptions.get(state, {}).get('label') or state

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date_range': repr(self.date_range),
            'fleet': self.fleet.to_dict(),
            'trend': [p.to_dict() for p in self.trend],
            'downtime': [r.to_dict() for r in self.downtime],
            'downtime_summary': self.downtime_summary,
            'machine_states': self.machine_states,
            'warnings': list(self.warnings),
        }


def _downtime_in_range(entries: List[DowntimeEntry], date_range: DateRange) -> List[DowntimeEntry]:
    return [
        e for e in entries
        if e.start_time is not None and date_range.contains(e.start_time.date())
    ]


def build_dashboard(
    sources: DashboardSources,
    date_range: DateRange,
    config: Optional[EngineConfig] = None,
    machine_id: Optional[str] = None
) -> DashboardData:
    """
    Build dashboard figures from fetched sources.

    Production records are read through aggregate_from_persisted(); their
    stored ratios are authoritative.

    Args:
        sources: Raw DataFrames from load_dashboard_sources()
        date_range: Inclusive reporting range
        config: Engine configuration
        machine_id: Limit the dashboard to one machine. Records, downtime and
            the registry are narrowed, so fleet figures and state counts cover
            only that machine.

    Returns:
        DashboardData

    Raises:
        NoMachineDataError: If the machine registry yielded no machines, or
            machine_id is not registered
    """
    config = resolve_config(config)

    machines = frame_to_machines(sources.machines, config)
    if not machines:
        if 'machines' in sources.failed_sources:
            raise NoMachineDataError("Machine registry could not be loaded")
        raise NoMachineDataError("No machines registered")

    if machine_id is not None:
        machines = [m for m in machines if m.id == str(machine_id)]
        if not machines:
            raise NoMachineDataError(f"Machine {machine_id} is not registered")

    warnings = [f"Data source '{name}' is unavailable" for name in sources.failed_sources]

    records = aggregate_from_persisted(frame_to_production_records(sources.production))
    records = filter_records_by_date_range(records, date_range)
    if machine_id is not None:
        records = [r for r in records if r.machine_id == str(machine_id)]

    fleet = aggregate_fleet(
        group_metrics_by_machine(records),
        [m.id for m in machines],
        config,
    )
    trend = build_trend(records, date_range.start, date_range.end, config)

    entries = _downtime_in_range(frame_to_downtime_entries(sources.downtime), date_range)
    if machine_id is not None:
        entries = [e for e in entries if e.machine_id == str(machine_id)]
    rankings = analyze_downtime(entries, config)

    logger.info(
        f"Dashboard for {date_range}: {len(machines)} machines, {len(records)} records, "
        f"{len(trend)} trend points, {len(rankings)} downtime causes"
    )

    return DashboardData(
        date_range=date_range,
        machines=machines,
        fleet=fleet,
        trend=trend,
        downtime=rankings,
        downtime_summary=summarize_downtime(entries, config),
        machine_states=summarize_machine_states(machines, config.normal_operation_state),
        records=records,
        status_descriptions=frame_to_status_descriptions(sources.status_descriptions),
        warnings=warnings,
    )


def load_dashboard(
    date_range: DateRange,
    machine_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    fetchers: Optional[Dict[str, SourceFetcher]] = None
) -> DashboardData:
    """Fetch all sources and build the dashboard in one call."""
    sources = load_dashboard_sources(date_range, machine_id, config, fetchers)
    return build_dashboard(sources, date_range, config, machine_id)
