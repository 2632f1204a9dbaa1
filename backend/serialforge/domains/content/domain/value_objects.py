"""Content domain value objects."""
from dataclasses import dataclass
from datetime import datetime

from .entities import WorkStatus


@dataclass(frozen=True)
class WorkSummary:
    slug: str
    title: str
    status: WorkStatus
    updated_at: datetime


@dataclass(frozen=True)
class WorkProgress:
    slug: str
    title: str
    status: WorkStatus
    units_completed: int
    latest_unit: int
    planned_units: int
    last_update: datetime

    @property
    def progress_ratio(self) -> float:
        if self.planned_units <= 0:
            return 0.0
        return self.units_completed / self.planned_units

    @property
    def progress_percentage(self) -> int:
        return round(self.progress_ratio * 100)
