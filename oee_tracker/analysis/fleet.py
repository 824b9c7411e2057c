"""
Fleet Aggregator
Combines per-machine OEE metrics over a date window into one fleet-wide
figure plus a per-machine list.

Ratios are averaged (unweighted by default), runtimes and quantities are
summed. Machines in the registry without any record count as zero.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np

from oee_tracker.calculations.oee import OEEMetrics, _clamp_ratio
from oee_tracker.calculations.records import Machine, NORMAL_OPERATION
from oee_tracker.config import EngineConfig, resolve_config
from .daily import METRIC_COLUMNS, DatedMetrics

logger = logging.getLogger(__name__)

SUMMED_FIELDS = ['actual_runtime', 'planned_runtime', 'ideal_runtime', 'output_qty', 'defect_qty']


class NoMachineDataError(Exception):
    """Raised when the machine registry yields no machines at all."""
    pass


@dataclass
class MachineMetrics:
    """Aggregated metrics for one machine over a window"""
    machine_id: str
    metrics: OEEMetrics
    record_count: int = 0

    @property
    def has_data(self) -> bool:
        return self.record_count > 0

    def to_dict(self) -> Dict:
        row = {'machine_id': self.machine_id, 'record_count': self.record_count}
        row.update(self.metrics.to_dict())
        return row


@dataclass
class FleetSummary:
    """Fleet-wide OEE plus the per-machine breakdown it was built from"""
    overall: OEEMetrics
    per_machine: List[MachineMetrics] = field(default_factory=list)
    machine_count: int = 0
    machines_with_data: int = 0

    def to_dict(self) -> Dict:
        return {
            'overall': self.overall.to_dict(),
            'per_machine': [m.to_dict() for m in self.per_machine],
            'machine_count': self.machine_count,
            'machines_with_data': self.machines_with_data,
        }


def _mean_ratio(values: List[float], weights: Optional[List[float]] = None) -> float:
    """Mean of ratios, output-weighted when weights are given and not all zero."""
    if not values:
        return 0.0
    if weights is not None and sum(weights) > 0:
        return _clamp_ratio(np.average(values, weights=weights))
    return _clamp_ratio(np.mean(values))


def average_metrics(metrics: List[OEEMetrics], weight_by_volume: bool = False) -> OEEMetrics:
    """
    Combine several OEEMetrics into one.

    The four ratios are averaged (output-weighted if requested, falling back
    to the plain mean when total output is 0); runtimes and quantities are summed.

    Args:
        metrics: Metrics to combine
        weight_by_volume: Weight ratios by output_qty

    Returns:
        Combined OEEMetrics (all zero for an empty list)
    """
    if not metrics:
        return OEEMetrics.zero()

    weights = [m.output_qty for m in metrics] if weight_by_volume else None
    ratios = {
        name: _mean_ratio([getattr(m, name) for m in metrics], weights)
        for name in METRIC_COLUMNS
    }
    totals = {name: sum(getattr(m, name) for m in metrics) for name in SUMMED_FIELDS}

    return OEEMetrics(**ratios, **totals)


def group_metrics_by_machine(dated: Iterable[DatedMetrics]) -> Dict[str, List[OEEMetrics]]:
    """
    Group dated metrics by machine ID.

    Returns:
        Dictionary mapping machine ID to its metrics, in input order
    """
    grouped: Dict[str, List[OEEMetrics]] = {}
    for entry in dated:
        grouped.setdefault(entry.machine_id, []).append(entry.metrics)
    return grouped


def aggregate_fleet(
    machine_metrics: Dict[str, List[OEEMetrics]],
    all_machine_ids: Iterable[str],
    config: Optional[EngineConfig] = None,
    *,
    weight_by_volume: Optional[bool] = None,
    include_zero_record_machines: Optional[bool] = None
) -> FleetSummary:
    """
    Aggregate per-machine metrics into a fleet summary.

    Each machine's metric is the mean of its records. The fleet ratio is the
    sum of per-machine ratios divided by the number of registry machines
    (include_zero_record_machines=True) or by the number of machines with
    data. Metrics for machine IDs outside the registry are ignored.

    Args:
        machine_metrics: Metrics per machine ID over the window
        all_machine_ids: Every machine in the registry
        config: Engine configuration providing the flag defaults
        weight_by_volume: Weight ratios by output_qty (overrides config)
        include_zero_record_machines: Count machines without records as zero
            (overrides config)

    Returns:
        FleetSummary; an empty registry gives zeroed overall metrics

    Example:
        >>> summary = aggregate_fleet(
        ...     {'M1': [m1], 'M2': [m2]}, ['M1', 'M2', 'M3'])
        >>> summary.machine_count, summary.machines_with_data
        (3, 2)
    """
    config = resolve_config(config)
    if weight_by_volume is None:
        weight_by_volume = config.weight_by_volume
    if include_zero_record_machines is None:
        include_zero_record_machines = config.include_zero_record_machines

    machine_ids = list(dict.fromkeys(str(m) for m in all_machine_ids))
    registry = set(machine_ids)

    metrics_by_id = {str(k): list(v) for k, v in machine_metrics.items()}

    unknown = [m for m in metrics_by_id if m not in registry]
    if unknown:
        logger.warning(f"Ignoring metrics for machines not in the registry: {unknown}")

    if not machine_ids:
        logger.info("Fleet aggregation over an empty registry")
        return FleetSummary(overall=OEEMetrics.zero())

    per_machine = []
    for machine_id in machine_ids:
        records = metrics_by_id.get(machine_id, [])
        per_machine.append(MachineMetrics(
            machine_id=machine_id,
            metrics=average_metrics(records, weight_by_volume),
            record_count=len(records),
        ))

    with_data = [m for m in per_machine if m.has_data]
    contributing = per_machine if include_zero_record_machines else with_data
    denominator = max(len(contributing), 1)

    if weight_by_volume:
        total_output = sum(m.metrics.output_qty for m in contributing)
        if total_output > 0:
            ratios = {
                name: _clamp_ratio(
                    sum(getattr(m.metrics, name) * m.metrics.output_qty for m in contributing)
                    / total_output
                )
                for name in METRIC_COLUMNS
            }
        else:
            weight_by_volume = False

    if not weight_by_volume:
        ratios = {
            name: _clamp_ratio(sum(getattr(m.metrics, name) for m in contributing) / denominator)
            for name in METRIC_COLUMNS
        }

    totals = {name: sum(getattr(m.metrics, name) for m in per_machine) for name in SUMMED_FIELDS}
    overall = OEEMetrics(**ratios, **totals)

    logger.info(
        f"Fleet OEE {overall.oee:.1%} over {len(machine_ids)} machines "
        f"({len(with_data)} with data)"
    )

    return FleetSummary(
        overall=overall,
        per_machine=per_machine,
        machine_count=len(machine_ids),
        machines_with_data=len(with_data),
    )


def summarize_machine_states(
    machines: Iterable[Machine],
    normal_state: str = NORMAL_OPERATION
) -> Dict[str, int]:
    """
    Count machines by their current state.

    Returns:
        Dictionary with total, running, maintenance, stopped and other counts.
        Machines without a reported state count as other.
    """
    counts = {'total': 0, 'running': 0, 'maintenance': 0, 'stopped': 0, 'other': 0}
    for machine in machines:
        counts['total'] += 1
        state = (machine.current_state or '').upper()
        if state == normal_state:
            counts['running'] += 1
        elif state == 'MAINTENANCE':
            counts['maintenance'] += 1
        elif state in ('PLANNED_STOP', 'TEMPORARY_STOP'):
            counts['stopped'] += 1
        else:
            counts['other'] += 1
    return counts
