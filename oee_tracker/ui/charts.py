"""
Chart Builders

Plotly figures for the OEE dashboard. Builders return figures and never
call Streamlit, so they can be rendered anywhere.
"""

import plotly.graph_objects as go
from plotly.subplots import make_subplots
from typing import Dict, List, Optional

from oee_tracker.analysis.downtime import DowntimeRanking
from oee_tracker.analysis.fleet import MachineMetrics
from oee_tracker.analysis.trend import TrendPoint

METRIC_COLORS = {
    'oee': '#1f77b4',
    'availability': '#28a745',
    'performance': '#ffc107',
    'quality': '#6f42c1',
}

DOWNTIME_COLOR = '#dc3545'


def build_trend_figure(points: List[TrendPoint], target_oee: Optional[float] = None) -> go.Figure:
    """
    Line chart of OEE and its components over time (percent).

    Args:
        points: Trend points, ascending
        target_oee: Optional target drawn as a dashed line (ratio)
    """
    fig = go.Figure()
    dates = [p.date for p in points]

    for metric, color in METRIC_COLORS.items():
        fig.add_trace(go.Scatter(
            x=dates,
            y=[getattr(p, metric) * 100 for p in points],
            mode='lines+markers',
            name=metric.capitalize() if metric != 'oee' else 'OEE',
            line=dict(color=color, width=3 if metric == 'oee' else 1.5),
            hovertemplate='%{x|%Y-%m-%d}<br>%{y:.1f}%<extra></extra>'
        ))

    if target_oee is not None:
        fig.add_hline(
            y=target_oee * 100,
            line_dash='dash',
            line_color='#dc3545',
            annotation_text=f"Target {target_oee:.0%}"
        )

    fig.update_layout(
        xaxis_title='Date',
        yaxis_title='Percentage (%)',
        yaxis=dict(range=[0, 105]),
        height=400,
        hovermode='x unified',
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    )
    return fig


def build_pareto_figure(
    rankings: List[DowntimeRanking],
    status_descriptions: Optional[Dict[str, Dict[str, str]]] = None
) -> go.Figure:
    """
    Downtime Pareto chart: duration bars per cause with the cumulative
    percentage on a secondary axis.

    Args:
        rankings: Ranked downtime causes
        status_descriptions: Optional label and color per machine state;
            causes without one keep their raw name and the default color
    """
    status_descriptions = status_descriptions or {}
    fig = make_subplots(specs=[[{"secondary_y": True}]])
    causes = [status_descriptions.get(r.cause, {}).get('label') or r.cause for r in rankings]
    colors = [status_descriptions.get(r.cause, {}).get('color') or DOWNTIME_COLOR for r in rankings]

    fig.add_trace(
        go.Bar(
            x=causes,
            y=[r.duration_minutes for r in rankings],
            name='Downtime (min)',
            marker_color=colors,
            customdata=[r.occurrence_count for r in rankings],
            hovertemplate='%{x}<br>%{y:.0f} min<br>%{customdata} events<extra></extra>'
        ),
        secondary_y=False,
    )
    fig.add_trace(
        go.Scatter(
            x=causes,
            y=[r.cumulative_percentage for r in rankings],
            name='Cumulative %',
            mode='lines+markers',
            line=dict(color='#6c757d'),
            hovertemplate='%{x}<br>%{y:.1f}%<extra></extra>'
        ),
        secondary_y=True,
    )

    fig.update_layout(height=400, legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1))
    fig.update_yaxes(title_text='Minutes', secondary_y=False)
    fig.update_yaxes(title_text='Cumulative (%)', range=[0, 105], secondary_y=True)
    return fig


def build_machine_comparison_figure(per_machine: List[MachineMetrics], names: Optional[dict] = None) -> go.Figure:
    """Horizontal bars of OEE per machine, lowest first."""
    names = names or {}
    ordered = sorted(per_machine, key=lambda m: m.metrics.oee)

    fig = go.Figure(go.Bar(
        x=[m.metrics.oee * 100 for m in ordered],
        y=[names.get(m.machine_id, m.machine_id) for m in ordered],
        orientation='h',
        marker_color=['#6c757d' if not m.has_data else METRIC_COLORS['oee'] for m in ordered],
        hovertemplate='%{y}<br>OEE %{x:.1f}%<extra></extra>'
    ))
    fig.update_layout(
        xaxis_title='OEE (%)',
        xaxis=dict(range=[0, 100]),
        height=max(300, 30 * len(ordered)),
    )
    return fig
