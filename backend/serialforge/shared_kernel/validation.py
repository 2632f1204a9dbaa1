"""Accumulated validation outcome with reasons tagged by check."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .exceptions import ContinuityError, DomainError


@dataclass(frozen=True)
class ValidationReason:
    check: str
    error: DomainError

    def to_dict(self) -> Dict[str, Any]:
        return {"check": self.check, **self.error.to_dict()}


@dataclass
class ValidationResult:
    reasons: List[ValidationReason] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not self.reasons

    def add(self, check: str, error: DomainError) -> None:
        self.reasons.append(ValidationReason(check, error))

    def extend(self, other: "ValidationResult") -> None:
        self.reasons.extend(other.reasons)
        self.metrics.update(other.metrics)

    def for_check(self, check: str) -> List[ValidationReason]:
        return [reason for reason in self.reasons if reason.check == check]

    def continuity_errors(self) -> List[ContinuityError]:
        return [r.error for r in self.reasons if isinstance(r.error, ContinuityError)]

    def to_list(self) -> List[Dict[str, Any]]:
        return [reason.to_dict() for reason in self.reasons]

    def summary(self) -> str:
        return "; ".join(f"[{r.check}] {r.error.message}" for r in self.reasons)
