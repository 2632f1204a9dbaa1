"""Pydantic schemas for stored records, generator payloads and run results."""
from serialforge.schemas.records import (
    WorkRecord,
    UnitRecord,
    parse_record,
    dump_record,
)
from serialforge.schemas.generation import (
    WorkDraft,
    UnitDraft,
    GeneratedUnit,
    GeneratedWork,
    GeneratedCompletion,
    GenerationOptions,
)
from serialforge.schemas.run import RunOptions, RunError, RunResult

__all__ = [
    "WorkRecord",
    "UnitRecord",
    "parse_record",
    "dump_record",
    "WorkDraft",
    "UnitDraft",
    "GeneratedUnit",
    "GeneratedWork",
    "GeneratedCompletion",
    "GenerationOptions",
    "RunOptions",
    "RunError",
    "RunResult",
]
