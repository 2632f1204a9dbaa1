"""Payloads exchanged with the generator."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from serialforge.domains.continuity.domain import ContinuitySeed, UnitFacts
from serialforge.shared_kernel import SLUG_PATTERN


class WorkDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    slug: str = Field(..., pattern=SLUG_PATTERN.pattern)
    title: str = Field(..., min_length=1)
    summary: str = ""
    tags: List[str] = Field(default_factory=list)
    planned_units: Optional[int] = Field(None, ge=1)
    min_words: Optional[int] = Field(None, ge=1)
    max_words: Optional[int] = Field(None, ge=1)


class UnitDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    body: str
    is_epilogue: bool = False


class GeneratedUnit(BaseModel):
    unit: UnitDraft
    metadata: UnitFacts = Field(default_factory=UnitFacts)


class GeneratedWork(BaseModel):
    work: WorkDraft
    concept: Dict[str, str] = Field(default_factory=dict)
    seed: ContinuitySeed = Field(default_factory=ContinuitySeed)
    first_unit: Optional[GeneratedUnit] = None


class GeneratedCompletion(BaseModel):
    final_units: List[GeneratedUnit] = Field(default_factory=list)
    epilogue: Optional[GeneratedUnit] = None

    def ordered(self) -> List[GeneratedUnit]:
        units = list(self.final_units)
        if self.epilogue is not None:
            units.append(self.epilogue)
        return units


class GenerationOptions(BaseModel):
    """Free-form hints forwarded to the generator."""

    concept: Dict[str, str] = Field(default_factory=dict)
    target_words: Optional[int] = Field(None, ge=1)
    closing_units: Optional[int] = Field(None, ge=1)
    extra: Dict[str, Any] = Field(default_factory=dict)
