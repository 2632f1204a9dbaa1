"""Persistence for per-work continuity state."""
from __future__ import annotations

import logging

from serialforge.domains.continuity.domain import ContinuityState
from serialforge.infrastructure.storage import Storage
from serialforge.schemas import dump_record, parse_record
from serialforge.shared_kernel import NotFoundError, Result, ValidationError

logger = logging.getLogger(__name__)


def continuity_key(slug: str) -> str:
    return f"works/{slug}/continuity.json"


class ContinuityRepository:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def load(self, slug: str) -> Result[ContinuityState, Exception]:
        key = continuity_key(slug)
        raw = self.storage.read(key)
        if raw.is_failure:
            if isinstance(raw.error, NotFoundError):
                return Result.failure(
                    NotFoundError(f"No continuity state for '{slug}'", details={"slug": slug})
                )
            return raw
        parsed = parse_record(ContinuityState, raw.value, key)
        if parsed.is_success and parsed.value.work_slug != slug:
            logger.warning("Continuity record %s names work %s", key, parsed.value.work_slug)
            return Result.failure(
                ValidationError(
                    f"Continuity record {key} names work '{parsed.value.work_slug}'",
                    code="CORRUPT_RECORD",
                    details={"key": key, "work_slug": parsed.value.work_slug},
                )
            )
        return parsed

    def save(self, state: ContinuityState) -> Result[None, Exception]:
        written = self.storage.write(continuity_key(state.work_slug), dump_record(state))
        if written.is_success:
            logger.debug("Saved continuity for %s at unit %s", state.work_slug, state.last_unit)
        return written
