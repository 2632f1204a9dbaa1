"""Shared kernel primitives (value objects, errors, results)."""

from .exceptions import (
    DomainError,
    NotFoundError,
    ValidationError,
    LengthError,
    DuplicationError,
    QualityError,
    ContinuityError,
    StorageError,
    GenerationError,
)
from .value_objects import (
    SLUG_PATTERN,
    is_valid_slug,
    count_words,
    WordCount,
    QualityScore,
)
from .result import Result
from .validation import ValidationReason, ValidationResult

__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "LengthError",
    "DuplicationError",
    "QualityError",
    "ContinuityError",
    "StorageError",
    "GenerationError",
    "SLUG_PATTERN",
    "is_valid_slug",
    "count_words",
    "WordCount",
    "QualityScore",
    "Result",
    "ValidationReason",
    "ValidationResult",
]
