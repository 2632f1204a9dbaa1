"""Content domain: works and their units."""

from .entities import Work, WorkStatus, Unit, check_transition, unit_id, parse_unit_id
from .value_objects import WorkSummary, WorkProgress

__all__ = [
    "Work",
    "WorkStatus",
    "Unit",
    "check_transition",
    "unit_id",
    "parse_unit_id",
    "WorkSummary",
    "WorkProgress",
]
