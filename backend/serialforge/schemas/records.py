"""Strict schemas for records crossing the storage boundary."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from serialforge.domains.content.domain import Unit, Work, WorkStatus
from serialforge.shared_kernel import Result, SLUG_PATTERN, ValidationError

M = TypeVar("M", bound=BaseModel)


class StrictRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")


class WorkRecord(StrictRecord):
    slug: str = Field(..., pattern=SLUG_PATTERN.pattern)
    title: str = Field(..., min_length=1)
    status: WorkStatus
    planned_units: int = Field(..., ge=1)
    created_at: datetime
    updated_at: datetime
    summary: str = ""
    tags: List[str] = Field(default_factory=list)
    min_words: Optional[int] = Field(None, ge=1)
    max_words: Optional[int] = Field(None, ge=1)
    concept: Dict[str, str] = Field(default_factory=dict)

    @field_validator("tags")
    @classmethod
    def sort_tags(cls, v: List[str]) -> List[str]:
        return sorted(set(v))

    @classmethod
    def from_domain(cls, work: Work) -> "WorkRecord":
        return cls(
            slug=work.slug,
            title=work.title,
            status=work.status,
            planned_units=work.planned_units,
            created_at=work.created_at,
            updated_at=work.updated_at,
            summary=work.summary,
            tags=list(work.tags),
            min_words=work.min_words,
            max_words=work.max_words,
            concept=dict(work.concept),
        )

    def to_domain(self) -> Work:
        return Work(
            slug=self.slug,
            title=self.title,
            status=self.status,
            planned_units=self.planned_units,
            created_at=self.created_at,
            updated_at=self.updated_at,
            summary=self.summary,
            tags=frozenset(self.tags),
            min_words=self.min_words,
            max_words=self.max_words,
            concept=dict(self.concept),
        )


class UnitRecord(StrictRecord):
    work_slug: str = Field(..., pattern=SLUG_PATTERN.pattern)
    number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    word_count: int = Field(..., ge=0)
    publication_date: date
    is_epilogue: bool = False

    @classmethod
    def from_domain(cls, unit: Unit) -> "UnitRecord":
        return cls(
            work_slug=unit.work_slug,
            number=unit.number,
            title=unit.title,
            body=unit.body,
            word_count=unit.word_count,
            publication_date=unit.publication_date,
            is_epilogue=unit.is_epilogue,
        )

    def to_domain(self) -> Unit:
        return Unit(
            work_slug=self.work_slug,
            number=self.number,
            title=self.title,
            body=self.body,
            word_count=self.word_count,
            publication_date=self.publication_date,
            is_epilogue=self.is_epilogue,
        )


def parse_record(model: Type[M], raw: bytes, key: str = "") -> Result[M, ValidationError]:
    """Parse stored bytes through ``model``; malformed or partial records fail closed."""
    try:
        return Result.success(model.model_validate_json(raw))
    except PydanticValidationError as exc:
        return Result.failure(
            ValidationError(
                f"Stored record '{key}' does not match {model.__name__}",
                code="CORRUPT_RECORD",
                details={"key": key, "errors": exc.errors(include_url=False, include_context=False)},
            )
        )


def dump_record(record: BaseModel) -> bytes:
    return record.model_dump_json(indent=2).encode("utf-8")
