"""
OEE Status Thresholds
Classifies OEE figures against the targets and thresholds in EngineConfig
"""
from typing import Dict, List, Optional

from oee_tracker.config import EngineConfig, resolve_config

STATUS_LEVELS = ['excellent', 'good', 'warning', 'critical']

STATUS_COLORS = {
    'excellent': '#52c41a',
    'good': '#1890ff',
    'warning': '#faad14',
    'critical': '#ff4d4f',
}


def _status_against_target(value: float, target: float, good_factor: float, warning_factor: float) -> str:
    if value >= target:
        return 'excellent'
    if value >= target * good_factor:
        return 'good'
    if value >= target * warning_factor:
        return 'warning'
    return 'critical'


def get_oee_status(oee: float, config: Optional[EngineConfig] = None) -> str:
    """
    Classify an OEE ratio.

    Args:
        oee: OEE ratio (0.0 to 1.0)
        config: Engine configuration with target_oee and thresholds

    Returns:
        'excellent' at or above target, 'good' at or above the low threshold,
        'warning' at or above the critical threshold, otherwise 'critical'

    Example:
        >>> get_oee_status(0.72)
        'good'
    """
    config = resolve_config(config)
    if oee >= config.target_oee:
        return 'excellent'
    if oee >= config.low_oee_threshold:
        return 'good'
    if oee >= config.critical_oee_threshold:
        return 'warning'
    return 'critical'


def get_oee_grade(oee: float, config: Optional[EngineConfig] = None) -> str:
    """Letter grade A-D, using the same bands as get_oee_status()"""
    status = get_oee_status(oee, config)
    return {'excellent': 'A', 'good': 'B', 'warning': 'C', 'critical': 'D'}[status]


def get_status_color(status: str) -> str:
    return STATUS_COLORS.get(status, '#d9d9d9')


def get_availability_status(availability: float, config: Optional[EngineConfig] = None) -> str:
    config = resolve_config(config)
    return _status_against_target(availability, config.target_availability, 0.8, 0.6)


def get_performance_status(performance: float, config: Optional[EngineConfig] = None) -> str:
    config = resolve_config(config)
    return _status_against_target(performance, config.target_performance, 0.8, 0.6)


def get_quality_status(quality: float, config: Optional[EngineConfig] = None) -> str:
    # Quality bands are tighter: 95% and 90% of target
    config = resolve_config(config)
    return _status_against_target(quality, config.target_quality, 0.95, 0.9)


def should_alert_downtime(downtime_minutes: float, config: Optional[EngineConfig] = None) -> bool:
    """True when accumulated downtime reaches the alert threshold"""
    config = resolve_config(config)
    return downtime_minutes >= config.downtime_alert_minutes


def get_target_achievement(actual: float, target: float) -> float:
    """
    Achievement against a target as a percentage.

    Returns:
        actual / target * 100, or 0.0 when the target is 0
    """
    if target == 0:
        return 0.0
    return actual / target * 100


def get_improvement_areas(
    availability: float,
    performance: float,
    quality: float,
    config: Optional[EngineConfig] = None
) -> List[str]:
    """Names of the OEE components that fall short of their targets"""
    config = resolve_config(config)
    areas = []
    if availability < config.target_availability:
        areas.append('availability')
    if performance < config.target_performance:
        areas.append('performance')
    if quality < config.target_quality:
        areas.append('quality')
    return areas


def analyze_losses(
    availability: float,
    performance: float,
    quality: float,
    config: Optional[EngineConfig] = None
) -> Dict[str, float]:
    """
    Break the gap between OEE and 100% into component losses.

    Losses are sequential percentage points: availability loss is taken
    first, performance loss applies to the available time, quality loss to
    the performing time. The three losses sum to total_loss.

    Args:
        availability: Availability ratio
        performance: Performance ratio
        quality: Quality ratio
        config: Engine configuration (for target_oee)

    Returns:
        Dictionary with oee, target_oee, total_loss, availability_loss,
        performance_loss, quality_loss and gap_to_target (percentage points)
    """
    config = resolve_config(config)
    oee = availability * performance * quality

    return {
        'oee': oee,
        'target_oee': config.target_oee,
        'total_loss': (1 - oee) * 100,
        'availability_loss': (1 - availability) * 100,
        'performance_loss': availability * (1 - performance) * 100,
        'quality_loss': availability * performance * (1 - quality) * 100,
        'gap_to_target': max(0.0, (config.target_oee - oee) * 100),
    }
