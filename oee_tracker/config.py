"""
Configuration Management

Loads environment configuration and builds the explicit EngineConfig value
that every aggregator receives. Nothing in the engine reads settings from
global state; callers pass a config (or accept the defaults).
"""

import os
from dataclasses import dataclass, asdict
from typing import Optional, List
from dotenv import load_dotenv


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineConfig:
    """
    Settings for OEE computation and aggregation.

    Targets and thresholds are ratios (0.0 to 1.0). Shift times are "HH:MM"
    strings interpreted in `timezone`.
    """
    # OEE targets
    target_oee: float = 0.85
    target_availability: float = 0.90
    target_performance: float = 0.95
    target_quality: float = 0.99

    # Status thresholds
    low_oee_threshold: float = 0.60
    critical_oee_threshold: float = 0.40
    downtime_alert_minutes: float = 30.0

    # Shift schedule
    day_shift_start: str = "08:00"
    day_shift_end: str = "20:00"
    night_shift_start: str = "20:00"
    night_shift_end: str = "08:00"
    break_time_minutes: float = 60.0

    # Tact time used for machines the registry reports without one (0 = no capacity)
    default_tact_time_seconds: float = 0.0

    # Aggregation rules
    weight_by_volume: bool = False
    include_zero_record_machines: bool = True
    normal_operation_state: str = "NORMAL_OPERATION"

    # Data fetching
    fetch_limit: int = 1000
    fetch_timeout_seconds: float = 30.0

    timezone: str = "Asia/Seoul"
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate ratio settings"""
        ratios = {
            'target_oee': self.target_oee,
            'target_availability': self.target_availability,
            'target_performance': self.target_performance,
            'target_quality': self.target_quality,
            'low_oee_threshold': self.low_oee_threshold,
            'critical_oee_threshold': self.critical_oee_threshold,
        }
        invalid = [name for name, value in ratios.items() if not 0.0 <= value <= 1.0]
        if invalid:
            raise ValueError(
                f"Ratio settings must be between 0.0 and 1.0: {', '.join(invalid)}"
            )
        if self.critical_oee_threshold > self.low_oee_threshold:
            raise ValueError(
                f"critical_oee_threshold ({self.critical_oee_threshold}) must not exceed "
                f"low_oee_threshold ({self.low_oee_threshold})"
            )
        if self.fetch_limit <= 0:
            raise ValueError(f"fetch_limit must be positive, got {self.fetch_limit}")

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        """
        Build configuration from environment variables.

        Unset variables fall back to the dataclass defaults. Call load_config()
        first if the values live in a .env file.

        Returns:
            EngineConfig populated from the environment
        """
        defaults = cls()
        return cls(
            target_oee=_env_float("TARGET_OEE", defaults.target_oee),
            target_availability=_env_float("TARGET_AVAILABILITY", defaults.target_availability),
            target_performance=_env_float("TARGET_PERFORMANCE", defaults.target_performance),
            target_quality=_env_float("TARGET_QUALITY", defaults.target_quality),
            low_oee_threshold=_env_float("LOW_OEE_THRESHOLD", defaults.low_oee_threshold),
            critical_oee_threshold=_env_float("CRITICAL_OEE_THRESHOLD", defaults.critical_oee_threshold),
            downtime_alert_minutes=_env_float("DOWNTIME_ALERT_MINUTES", defaults.downtime_alert_minutes),
            day_shift_start=os.getenv("DAY_SHIFT_START", defaults.day_shift_start),
            day_shift_end=os.getenv("DAY_SHIFT_END", defaults.day_shift_end),
            night_shift_start=os.getenv("NIGHT_SHIFT_START", defaults.night_shift_start),
            night_shift_end=os.getenv("NIGHT_SHIFT_END", defaults.night_shift_end),
            break_time_minutes=_env_float("BREAK_TIME_MINUTES", defaults.break_time_minutes),
            default_tact_time_seconds=_env_float("DEFAULT_TACT_TIME_SECONDS", defaults.default_tact_time_seconds),
            weight_by_volume=_env_bool("WEIGHT_BY_VOLUME", defaults.weight_by_volume),
            include_zero_record_machines=_env_bool(
                "INCLUDE_ZERO_RECORD_MACHINES", defaults.include_zero_record_machines
            ),
            normal_operation_state=os.getenv("NORMAL_OPERATION_STATE", defaults.normal_operation_state),
            fetch_limit=_env_int("FETCH_LIMIT", defaults.fetch_limit),
            fetch_timeout_seconds=_env_float("FETCH_TIMEOUT_SECONDS", defaults.fetch_timeout_seconds),
            timezone=os.getenv("TIMEZONE", defaults.timezone),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for display"""
        return asdict(self)


DEFAULT_CONFIG = EngineConfig()


def resolve_config(config: Optional[EngineConfig]) -> EngineConfig:
    """Return `config`, or the default configuration when None."""
    return config if config is not None else DEFAULT_CONFIG


def load_config(env_path: Optional[str] = None) -> bool:
    """
    Load environment configuration from .env file.

    Args:
        env_path: Optional path to .env file. If None, searches in current directory.

    Returns:
        bool: True if .env file was found and loaded, False otherwise
    """
    if env_path:
        return load_dotenv(env_path)
    return load_dotenv()


def get_database_config() -> dict:
    """
    Get configuration for the production database.

    Returns:
        dict: Database configuration

    Raises:
        ValueError: If required configuration is missing
    """
    config = {
        "host": os.getenv("PRODUCTIONDB_HOST"),
        "port": os.getenv("PRODUCTIONDB_PORT", "5432"),
        "database": os.getenv("PRODUCTIONDB_NAME"),
        "user": os.getenv("PRODUCTIONDB_USER"),
        "password": os.getenv("PRODUCTIONDB_PASS"),
    }

    missing = [k for k, v in config.items() if not v]
    if missing:
        raise ValueError(
            f"Missing production database configuration: {missing}. "
            f"Please check your .env file."
        )

    return config


def validate_config() -> List[str]:
    """
    Validate all required configuration is present.

    Returns:
        list: List of configuration problems (empty if all valid)
    """
    problems = []

    try:
        get_database_config()
    except ValueError as e:
        problems.append(f"DATABASE: {str(e)}")

    try:
        EngineConfig.from_env()
    except ValueError as e:
        problems.append(f"ENGINE: {str(e)}")

    return problems
