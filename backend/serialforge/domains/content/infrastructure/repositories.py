"""Work and Unit repositories backed by the storage capability."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from serialforge.domains.content.domain import (
    Unit,
    Work,
    WorkProgress,
    WorkStatus,
    WorkSummary,
    check_transition,
    parse_unit_id,
    unit_id,
)
from serialforge.infrastructure.storage import Storage
from serialforge.schemas import UnitRecord, WorkRecord, dump_record, parse_record
from serialforge.shared_kernel import (
    NotFoundError,
    Result,
    ValidationError,
    is_valid_slug,
)

logger = logging.getLogger(__name__)

WORKS_PREFIX = "works/"


def work_key(slug: str) -> str:
    return f"{WORKS_PREFIX}{slug}/work.json"


def units_prefix(slug: str) -> str:
    return f"{WORKS_PREFIX}{slug}/units/"


def unit_key(slug: str, number: int) -> str:
    return f"{units_prefix(slug)}{number:05d}.json"


def _invalid_slug(slug: str) -> Result:
    return Result.failure(
        ValidationError(f"Invalid slug '{slug}'", code="INVALID_SLUG", details={"slug": slug})
    )


class UnitRepository:
    """Numbered units of a work; numbering stays contiguous from 1."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def _numbers(self, slug: str) -> Result[List[int], Exception]:
        listed = self.storage.list(units_prefix(slug))
        if listed.is_failure:
            return listed
        numbers = []
        for key in listed.value:
            name = key.rsplit("/", 1)[-1]
            stem = name[: -len(".json")] if name.endswith(".json") else ""
            if stem.isdigit():
                numbers.append(int(stem))
        return Result.success(sorted(numbers))

    def latest_number(self, slug: str) -> Result[int, Exception]:
        return self._numbers(slug).map(lambda numbers: numbers[-1] if numbers else 0)

    def count(self, slug: str) -> Result[int, Exception]:
        return self._numbers(slug).map(len)

    def get(self, slug: str, number: int) -> Result[Unit, Exception]:
        key = unit_key(slug, number)
        raw = self.storage.read(key)
        if raw.is_failure:
            if isinstance(raw.error, NotFoundError):
                return Result.failure(
                    NotFoundError(f"Unit {number} of '{slug}' not found", details={"slug": slug, "number": number})
                )
            return raw
        return parse_record(UnitRecord, raw.value, key).map(UnitRecord.to_domain)

    def list(self, slug: str) -> Result[List[Unit], Exception]:
        numbers = self._numbers(slug)
        if numbers.is_failure:
            return numbers
        units = []
        for number in numbers.value:
            fetched = self.get(slug, number)
            if fetched.is_failure:
                return fetched
            units.append(fetched.value)
        return Result.success(units)

    def create(self, unit: Unit) -> Result[str, Exception]:
        if not is_valid_slug(unit.work_slug):
            return _invalid_slug(unit.work_slug)
        if unit.number < 1:
            return Result.failure(
                ValidationError(f"Unit number must be positive, got {unit.number}", code="INVALID_NUMBER")
            )
        latest = self.latest_number(unit.work_slug)
        if latest.is_failure:
            return latest
        if unit.number <= latest.value:
            return Result.failure(
                ValidationError(
                    f"Unit {unit.number} of '{unit.work_slug}' already exists",
                    code="duplicate",
                    details={"slug": unit.work_slug, "number": unit.number},
                )
            )
        if unit.number > latest.value + 1:
            return Result.failure(
                ValidationError(
                    f"Unit {unit.number} of '{unit.work_slug}' would leave a gap after {latest.value}",
                    code="gap",
                    details={"slug": unit.work_slug, "number": unit.number, "latest": latest.value},
                )
            )
        written = self.storage.write(
            unit_key(unit.work_slug, unit.number), dump_record(UnitRecord.from_domain(unit))
        )
        if written.is_failure:
            return written
        logger.info("Stored unit %s (%s words)", unit.id, unit.word_count)
        return Result.success(unit.id)

    def create_batch(self, units: Sequence[Unit]) -> Result[List[str], Exception]:
        """Create every unit or none of them."""
        created: List[Unit] = []
        for unit in units:
            result = self.create(unit)
            if result.is_failure:
                for done in reversed(created):
                    rollback = self.storage.delete(unit_key(done.work_slug, done.number))
                    if rollback.is_failure:
                        logger.error("Rollback of unit %s failed: %s", done.id, rollback.error)
                return result
            created.append(unit)
        return Result.success([unit.id for unit in created])

    def delete(self, value: str) -> Result[None, Exception]:
        parsed = parse_unit_id(value)
        if parsed.is_failure:
            return parsed
        slug, number = parsed.value
        latest = self.latest_number(slug)
        if latest.is_failure:
            return latest
        if number > latest.value or number < 1:
            return Result.failure(NotFoundError(f"Unit {value} not found", details={"id": value}))
        if number != latest.value:
            return Result.failure(
                ValidationError(
                    f"Only the latest unit ({latest.value}) of '{slug}' can be deleted",
                    code="NOT_LATEST",
                    details={"id": value, "latest": latest.value},
                )
            )
        return self.storage.delete(unit_key(slug, number))


class WorkRepository:
    def __init__(self, storage: Storage, units: Optional[UnitRepository] = None) -> None:
        self.storage = storage
        self.units = units or UnitRepository(storage)

    def _save(self, work: Work) -> Result[None, Exception]:
        return self.storage.write(work_key(work.slug), dump_record(WorkRecord.from_domain(work)))

    def get(self, slug: str) -> Result[Work, Exception]:
        if not is_valid_slug(slug):
            return _invalid_slug(slug)
        key = work_key(slug)
        raw = self.storage.read(key)
        if raw.is_failure:
            if isinstance(raw.error, NotFoundError):
                return Result.failure(NotFoundError(f"Work '{slug}' not found", details={"slug": slug}))
            return raw
        return parse_record(WorkRecord, raw.value, key).map(WorkRecord.to_domain)

    def list_all(self) -> Result[List[Work], Exception]:
        listed = self.storage.list(WORKS_PREFIX)
        if listed.is_failure:
            return listed
        works = []
        for key in listed.value:
            parts = key.split("/")
            if len(parts) != 3 or parts[2] != "work.json":
                continue
            fetched = self.get(parts[1])
            if fetched.is_failure:
                return fetched
            works.append(fetched.value)
        return Result.success(sorted(works, key=lambda w: w.slug))

    def list_active(self) -> Result[List[WorkSummary], Exception]:
        return self.list_all().map(
            lambda works: [
                WorkSummary(slug=w.slug, title=w.title, status=w.status, updated_at=w.updated_at)
                for w in works
                if w.status.in_progress
            ]
        )

    def get_progress(self, slug: str) -> Result[WorkProgress, Exception]:
        work = self.get(slug)
        if work.is_failure:
            return work
        latest = self.units.latest_number(slug)
        if latest.is_failure:
            return latest
        count = self.units.count(slug)
        if count.is_failure:
            return count
        w = work.value
        return Result.success(
            WorkProgress(
                slug=w.slug,
                title=w.title,
                status=w.status,
                units_completed=count.value,
                latest_unit=latest.value,
                planned_units=w.planned_units,
                last_update=w.updated_at,
            )
        )

    def create(self, work: Work) -> Result[str, Exception]:
        if not is_valid_slug(work.slug):
            return _invalid_slug(work.slug)
        exists = self.storage.exists(work_key(work.slug))
        if exists.is_failure:
            return exists
        if exists.value:
            return Result.failure(
                ValidationError(f"Work '{work.slug}' already exists", code="duplicate", details={"slug": work.slug})
            )
        saved = self._save(work)
        if saved.is_failure:
            return saved
        logger.info("Created work %s", work.slug)
        return Result.success(work.slug)

    def update_status(
        self, slug: str, status: WorkStatus, at: Optional[datetime] = None
    ) -> Result[None, Exception]:
        fetched = self.get(slug)
        if fetched.is_failure:
            return fetched
        work = fetched.value
        allowed = check_transition(work.status, status)
        if allowed.is_failure:
            return allowed
        if work.status == status:
            return Result.success(None)
        previous = work.status
        work.status = status
        work.updated_at = at or datetime.now(timezone.utc)
        saved = self._save(work)
        if saved.is_success:
            logger.info("Work %s: %s -> %s", slug, previous.value, status.value)
        return saved

    def touch(self, slug: str, at: Optional[datetime] = None) -> Result[None, Exception]:
        fetched = self.get(slug)
        if fetched.is_failure:
            return fetched
        work = fetched.value
        work.updated_at = at or datetime.now(timezone.utc)
        return self._save(work)

    def delete(self, slug: str) -> Result[None, Exception]:
        if not is_valid_slug(slug):
            return _invalid_slug(slug)
        exists = self.storage.exists(work_key(slug))
        if exists.is_failure:
            return exists
        if not exists.value:
            return Result.failure(NotFoundError(f"Work '{slug}' not found", details={"slug": slug}))
        listed = self.storage.list(f"{WORKS_PREFIX}{slug}/")
        if listed.is_failure:
            return listed
        # work.json goes last so a half-finished delete still lists the work
        keys = sorted(listed.value, key=lambda k: k == work_key(slug))
        for key in keys:
            removed = self.storage.delete(key)
            if removed.is_failure:
                return removed
        logger.info("Deleted work %s", slug)
        return Result.success(None)


__all__ = [
    "WorkRepository",
    "UnitRepository",
    "work_key",
    "unit_key",
    "units_prefix",
    "unit_id",
]
