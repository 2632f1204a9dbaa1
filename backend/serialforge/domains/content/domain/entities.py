"""Content domain entities."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from serialforge.shared_kernel import Result, ValidationError, count_words


class WorkStatus(Enum):
    ACTIVE = "active"
    COMPLETION_READY = "completion-ready"
    COMPLETED = "completed"
    PAUSED = "paused"

    @property
    def in_progress(self) -> bool:
        return self in (WorkStatus.ACTIVE, WorkStatus.COMPLETION_READY)


_ALLOWED_TRANSITIONS: Dict[WorkStatus, FrozenSet[WorkStatus]] = {
    WorkStatus.ACTIVE: frozenset({WorkStatus.COMPLETION_READY, WorkStatus.COMPLETED, WorkStatus.PAUSED}),
    WorkStatus.COMPLETION_READY: frozenset({WorkStatus.COMPLETED}),
    WorkStatus.COMPLETED: frozenset(),
    WorkStatus.PAUSED: frozenset({WorkStatus.ACTIVE}),
}


def check_transition(current: WorkStatus, target: WorkStatus) -> Result[WorkStatus, ValidationError]:
    """Status only moves forward, except the paused/active toggle."""
    if current == target or target in _ALLOWED_TRANSITIONS[current]:
        return Result.success(target)
    return Result.failure(
        ValidationError(
            f"Illegal status transition {current.value} -> {target.value}",
            code="ILLEGAL_TRANSITION",
            details={"from": current.value, "to": target.value},
        )
    )


@dataclass
class Work:
    """Aggregate root for a serialized work."""

    slug: str
    title: str
    status: WorkStatus
    planned_units: int
    created_at: datetime
    updated_at: datetime
    summary: str = ""
    tags: FrozenSet[str] = field(default_factory=frozenset)
    min_words: Optional[int] = None
    max_words: Optional[int] = None
    concept: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        slug: str,
        title: str,
        planned_units: int,
        summary: str = "",
        tags: Optional[set] = None,
        concept: Optional[Dict[str, str]] = None,
        now: Optional[datetime] = None,
    ) -> "Work":
        now = now or datetime.now(timezone.utc)
        return cls(
            slug=slug,
            title=title,
            status=WorkStatus.ACTIVE,
            planned_units=planned_units,
            created_at=now,
            updated_at=now,
            summary=summary,
            tags=frozenset(tags or ()),
            concept=dict(concept or {}),
        )

    def word_range(self, default_min: int, default_max: int) -> tuple[int, int]:
        return (self.min_words or default_min, self.max_words or default_max)


@dataclass(frozen=True)
class Unit:
    """One numbered installment; immutable once accepted."""

    work_slug: str
    number: int
    title: str
    body: str
    word_count: int
    publication_date: date
    is_epilogue: bool = False

    @property
    def id(self) -> str:
        return unit_id(self.work_slug, self.number)

    @classmethod
    def create(
        cls,
        work_slug: str,
        number: int,
        title: str,
        body: str,
        publication_date: Optional[date] = None,
        is_epilogue: bool = False,
    ) -> "Unit":
        return cls(
            work_slug=work_slug,
            number=number,
            title=title,
            body=body,
            word_count=count_words(body),
            publication_date=publication_date or datetime.now(timezone.utc).date(),
            is_epilogue=is_epilogue,
        )


def unit_id(work_slug: str, number: int) -> str:
    return f"{work_slug}:{number}"


def parse_unit_id(value: str) -> Result[tuple[str, int], ValidationError]:
    slug, sep, raw_number = value.rpartition(":")
    if not sep or not slug or not raw_number.isdigit():
        return Result.failure(ValidationError(f"Malformed unit id '{value}'", code="INVALID_ID"))
    return Result.success((slug, int(raw_number)))
