"""
Production Query Builder

Parameterized SQL for the production store. Identifiers and dates coming
from the UI are validated before they reach a query; values are always
passed as parameters, never interpolated.
"""

import logging
import re
from datetime import timedelta
from typing import Any, List, Optional, Tuple

from oee_tracker.calculations.records import NORMAL_OPERATION
from oee_tracker.time_windows.models import DateRange

logger = logging.getLogger(__name__)

MAX_LIMIT = 10000

_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')
_STATE_PATTERN = re.compile(r'^[A-Z_]+$')


class ProductionQueryBuilder:
    """Builds (query, parameters) tuples for the production database."""

    @staticmethod
    def validate_machine_id(machine_id: str) -> bool:
        """
        Validate machine ID format (UUIDs and short codes).

        Args:
            machine_id: Machine ID to validate

        Returns:
            bool: True if valid machine ID format
        """
        if not machine_id or len(str(machine_id)) > 64:
            return False
        return bool(_ID_PATTERN.match(str(machine_id)))

    @staticmethod
    def validate_state(state: str) -> bool:
        """Machine states are upper-case identifiers such as TOOL_CHANGE"""
        if not state or len(state) > 64:
            return False
        return bool(_STATE_PATTERN.match(state))

    @staticmethod
    def validate_limit(limit: int) -> int:
        """
        Clamp a row limit into 1..MAX_LIMIT.

        Raises:
            ValueError: If limit is not an integer
        """
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValueError(f"Limit must be an integer, got {limit!r}")
        return min(max(limit, 1), MAX_LIMIT)

    def _date_conditions(
        self,
        column: str,
        date_range: Optional[DateRange],
        end_exclusive_next_day: bool = False
    ) -> Tuple[List[str], List[Any]]:
        conditions, parameters = [], []
        if date_range is None:
            return conditions, parameters
        if date_range.start is not None:
            conditions.append(f"{column} >= %s")
            parameters.append(date_range.start)
        if date_range.end is not None:
            if end_exclusive_next_day:
                # Timestamps: include the whole end date
                conditions.append(f"{column} < %s")
                parameters.append(date_range.end + timedelta(days=1))
            else:
                conditions.append(f"{column} <= %s")
                parameters.append(date_range.end)
        return conditions, parameters

    def _machine_condition(self, column: str, machine_id: Optional[str]) -> Tuple[List[str], List[Any]]:
        if machine_id is None:
            return [], []
        if not self.validate_machine_id(machine_id):
            raise ValueError(f"Invalid machine ID: {machine_id!r}")
        return [f"{column} = %s"], [str(machine_id)]

    @staticmethod
    def _where(conditions: List[str]) -> str:
        return f"WHERE {' AND '.join(conditions)}" if conditions else ""

    def build_machines_query(self, active_only: bool = True) -> Tuple[str, List[Any]]:
        """
        Machines with the tact time of their current process.

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)
        """
        where = "WHERE m.is_active = %s" if active_only else ""
        query = f"""
            SELECT
                m.id,
                m.name,
                m.location,
                m.is_active,
                m.current_state,
                mp.tact_time_seconds
            FROM machines m
            LEFT JOIN model_processes mp ON mp.id = m.current_process_id
            {where}
            ORDER BY m.name ASC;
        """
        parameters = [True] if active_only else []
        return query, parameters

    def build_production_records_query(
        self,
        date_range: Optional[DateRange] = None,
        machine_id: Optional[str] = None,
        limit: int = 1000
    ) -> Tuple[str, List[Any]]:
        """
        Persisted per-shift production records, newest first.

        Args:
            date_range: Inclusive range on the production date
            machine_id: Restrict to one machine
            limit: Maximum rows

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)

        Raises:
            ValueError: If machine_id or limit is invalid
        """
        conditions, parameters = self._date_conditions("date", date_range)
        machine_conditions, machine_parameters = self._machine_condition("machine_id", machine_id)
        conditions += machine_conditions
        parameters += machine_parameters

        query = f"""
            SELECT
                record_id,
                machine_id,
                date,
                shift,
                planned_runtime,
                actual_runtime,
                ideal_runtime,
                output_qty,
                defect_qty,
                availability,
                performance,
                quality,
                oee
            FROM production_records
            {self._where(conditions)}
            ORDER BY date DESC, machine_id ASC
            LIMIT %s;
        """
        parameters.append(self.validate_limit(limit))

        logger.debug(f"Built production records query with {len(parameters)} parameters")
        return query, parameters

    def build_downtime_logs_query(
        self,
        date_range: Optional[DateRange] = None,
        machine_id: Optional[str] = None,
        limit: int = 1000,
        normal_state: str = NORMAL_OPERATION
    ) -> Tuple[str, List[Any]]:
        """
        Machine state logs that represent downtime (state other than normal
        operation, positive duration).

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)

        Raises:
            ValueError: If machine_id, limit or normal_state is invalid
        """
        if not self.validate_state(normal_state):
            raise ValueError(f"Invalid machine state: {normal_state!r}")

        conditions = ["state <> %s", "duration IS NOT NULL", "duration > 0"]
        parameters: List[Any] = [normal_state]

        date_conditions, date_parameters = self._date_conditions(
            "start_time", date_range, end_exclusive_next_day=True
        )
        machine_conditions, machine_parameters = self._machine_condition("machine_id", machine_id)
        conditions += date_conditions + machine_conditions
        parameters += date_parameters + machine_parameters

        query = f"""
            SELECT
                log_id,
                machine_id,
                state,
                start_time,
                end_time,
                duration
            FROM machine_logs
            {self._where(conditions)}
            ORDER BY start_time DESC
            LIMIT %s;
        """
        parameters.append(self.validate_limit(limit))
        return query, parameters

    def build_status_descriptions_query(self) -> Tuple[str, List[Any]]:
        """Display metadata for each machine state"""
        query = """
            SELECT status, description_en, description_ko, color_code, is_productive, display_order
            FROM machine_status_descriptions
            ORDER BY display_order ASC;
        """
        return query, []


# Module-level instance used by the fetchers
query_builder = ProductionQueryBuilder()
