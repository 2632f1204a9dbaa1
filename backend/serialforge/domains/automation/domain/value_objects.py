"""Automation domain value objects."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from serialforge.domains.content.domain import WorkProgress

READINESS_WEIGHTS = {
    "plot": 0.30,
    "character": 0.25,
    "relationship": 0.25,
    "world": 0.20,
}


class ActionKind(Enum):
    COMPLETE = "complete"
    CREATE_NEW = "create_new"
    CONTINUE = "continue"
    NO_ACTION = "no_action"


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    work_slug: Optional[str] = None
    reason: str = ""

    @classmethod
    def complete(cls, work_slug: str, reason: str = "") -> "Action":
        return cls(ActionKind.COMPLETE, work_slug, reason)

    @classmethod
    def create_new(cls, reason: str = "") -> "Action":
        return cls(ActionKind.CREATE_NEW, None, reason)

    @classmethod
    def continue_work(cls, work_slug: str, reason: str = "") -> "Action":
        return cls(ActionKind.CONTINUE, work_slug, reason)

    @classmethod
    def no_action(cls, reason: str = "") -> "Action":
        return cls(ActionKind.NO_ACTION, None, reason)


@dataclass(frozen=True)
class ReadinessScore:
    """Completion readiness sub-scores on a 0-100 scale."""

    plot: float
    character: float
    relationship: float
    world: float

    @property
    def composite(self) -> float:
        return (
            READINESS_WEIGHTS["plot"] * self.plot
            + READINESS_WEIGHTS["character"] * self.character
            + READINESS_WEIGHTS["relationship"] * self.relationship
            + READINESS_WEIGHTS["world"] * self.world
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "plot": round(self.plot, 2),
            "character": round(self.character, 2),
            "relationship": round(self.relationship, 2),
            "world": round(self.world, 2),
            "composite": round(self.composite, 2),
        }


@dataclass(frozen=True)
class WorkStanding:
    """One in-progress work as seen by the policy engine."""

    progress: WorkProgress
    completion_ready: bool
    readiness: Optional[ReadinessScore] = None

    @property
    def slug(self) -> str:
        return self.progress.slug

    @property
    def last_update(self) -> datetime:
        return self.progress.last_update


@dataclass(frozen=True)
class Situation:
    """Read-only snapshot of all in-progress works for one decision."""

    works: Tuple[WorkStanding, ...]
    max_active: int
    captured_at: datetime
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def active_count(self) -> int:
        return len(self.works)

    @property
    def below_max(self) -> bool:
        return self.active_count < self.max_active

    @property
    def completion_ready(self) -> List[WorkStanding]:
        return sorted((w for w in self.works if w.completion_ready), key=lambda w: w.slug)

    @property
    def continuable(self) -> List[WorkStanding]:
        return sorted(
            (w for w in self.works if not w.completion_ready),
            key=lambda w: (w.last_update, w.slug),
        )

    @property
    def oldest_update(self) -> Optional[datetime]:
        if not self.works:
            return None
        return min(w.last_update for w in self.works)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "captured_at": self.captured_at.isoformat(),
            "active_count": self.active_count,
            "max_active": self.max_active,
            "below_max": self.below_max,
            "oldest_update": self.oldest_update.isoformat() if self.oldest_update else None,
            "completion_ready": [w.slug for w in self.completion_ready],
            "works": [
                {
                    "slug": w.slug,
                    "status": w.progress.status.value,
                    "units": w.progress.units_completed,
                    "planned_units": w.progress.planned_units,
                    "progress_percentage": w.progress.progress_percentage,
                    "last_update": w.last_update.isoformat(),
                    "completion_ready": w.completion_ready,
                    "readiness": w.readiness.to_dict() if w.readiness else None,
                }
                for w in self.works
            ],
            "warnings": list(self.warnings),
        }
