"""
Metrics Display Functions

Streamlit components for fleet OEE, per-machine results, trend and downtime.
"""

import streamlit as st
import pandas as pd
import logging
from typing import Dict, List, Optional

from oee_tracker.analysis.dashboard import DashboardData
from oee_tracker.analysis.downtime import DowntimeRanking, top_contributors
from oee_tracker.calculations.oee import OEEMetrics
from oee_tracker.calculations.thresholds import (
    analyze_losses,
    get_improvement_areas,
    get_oee_grade,
    get_oee_status,
)
from oee_tracker.config import EngineConfig, resolve_config
from oee_tracker.utils.formatting import format_minutes, format_percentage
from .charts import build_machine_comparison_figure, build_pareto_figure, build_trend_figure

logger = logging.getLogger(__name__)

STATUS_ICONS = {'excellent': '🟢', 'good': '🔵', 'warning': '🟠', 'critical': '🔴'}


def display_no_machine_banner(message: str):
    """Shown instead of the dashboard when the registry has no machines."""
    st.error(f"🏭 No machine data available: {message}")
    st.info("Register machines or check the production database connection, then reload.")


def display_source_warnings(warnings: List[str]):
    for warning in warnings:
        st.warning(f"⚠️ {warning} - figures may be incomplete")


def display_oee_metrics(metrics: OEEMetrics, config: Optional[EngineConfig] = None, title: str = "Fleet OEE"):
    """
    Display the four OEE figures with status against target.

    Args:
        metrics: Metrics to show
        config: Engine configuration (targets)
        title: Section heading
    """
    config = resolve_config(config)
    st.subheader(f"📊 {title}")

    status = get_oee_status(metrics.oee, config)
    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric(
            "OEE",
            format_percentage(metrics.oee),
            delta=f"{(metrics.oee - config.target_oee) * 100:+.1f} pts vs target",
        )
        st.caption(f"{STATUS_ICONS[status]} Grade {get_oee_grade(metrics.oee, config)}")

    with col2:
        st.metric("Availability", format_percentage(metrics.availability))

    with col3:
        st.metric("Performance", format_percentage(metrics.performance))

    with col4:
        st.metric("Quality", format_percentage(metrics.quality))

    losses = analyze_losses(metrics.availability, metrics.performance, metrics.quality, config)
    areas = get_improvement_areas(metrics.availability, metrics.performance, metrics.quality, config)
    if areas:
        st.caption(
            f"Gap to target: {losses['gap_to_target']:.1f} pts. "
            f"Below target: {', '.join(areas)}"
        )


def display_machine_table(data: DashboardData):
    """Per-machine results table and comparison chart."""
    names = data.machine_names()
    rows = []
    for machine in data.fleet.per_machine:
        m = machine.metrics
        rows.append({
            'Machine': names.get(machine.machine_id, machine.machine_id),
            'Records': machine.record_count,
            'OEE': format_percentage(m.oee),
            'Availability': format_percentage(m.availability),
            'Performance': format_percentage(m.performance),
            'Quality': format_percentage(m.quality),
            'Output': m.output_qty,
            'Defects': m.defect_qty,
        })

    if not rows:
        st.info("No machines to compare")
        return

    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    st.plotly_chart(build_machine_comparison_figure(data.fleet.per_machine, names), use_container_width=True)


def display_trend(data: DashboardData, config: Optional[EngineConfig] = None):
    config = resolve_config(config)
    st.subheader("📈 OEE Trend")
    if not data.trend:
        st.info("No production records in the selected range")
        return
    st.plotly_chart(build_trend_figure(data.trend, config.target_oee), use_container_width=True)


def display_downtime(
    rankings: List[DowntimeRanking],
    summary: Dict[str, float],
    status_descriptions: Optional[Dict[str, Dict[str, str]]] = None
):
    """Downtime headline figures, Pareto chart and vital-few causes."""
    st.subheader("⏱️ Downtime Analysis")

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Downtime", format_minutes(summary.get('total_minutes', 0)))
    with col2:
        st.metric("Events", summary.get('event_count', 0))
    with col3:
        st.metric("Avg per Event", format_minutes(summary.get('avg_minutes_per_event', 0)))

    if not rankings:
        st.info("No downtime recorded in the selected range")
        return

    status_descriptions = status_descriptions or {}
    st.plotly_chart(build_pareto_figure(rankings, status_descriptions), use_container_width=True)

    vital_few = top_contributors(rankings)
    labels = [status_descriptions.get(r.cause, {}).get('label') or r.cause for r in vital_few]
    st.caption(
        f"{len(vital_few)} of {len(rankings)} causes account for "
        f"{vital_few[-1].cumulative_percentage:.1f}% of downtime: "
        f"{', '.join(labels)}"
    )


def display_machine_states(states: Dict[str, int]):
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Machines", states.get('total', 0))
    with col2:
        st.metric("Running", states.get('running', 0))
    with col3:
        st.metric("Maintenance", states.get('maintenance', 0))
    with col4:
        st.metric("Stopped", states.get('stopped', 0))


def display_dashboard(data: DashboardData, config: Optional[EngineConfig] = None):
    """Render the full dashboard."""
    display_source_warnings(data.warnings)
    display_machine_states(data.machine_states)
    st.divider()
    display_oee_metrics(data.fleet.overall, config)
    st.caption(
        f"{data.fleet.machines_with_data} of {data.fleet.machine_count} machines reported production"
    )
    st.divider()
    display_trend(data, config)
    st.divider()
    display_machine_table(data)
    st.divider()
    display_downtime(data.downtime, data.downtime_summary, data.status_descriptions)
