"""Shared kernel value objects."""
from dataclasses import dataclass
import re

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def is_valid_slug(value: str) -> bool:
    return bool(value) and SLUG_PATTERN.match(value) is not None


def count_words(text: str) -> int:
    return len(text.split())


@dataclass(frozen=True)
class WordCount:
    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Word count cannot be negative")

    def is_within_range(self, min_words: int, max_words: int) -> bool:
        return min_words <= self.value <= max_words


@dataclass(frozen=True)
class QualityScore:
    value: float

    def __post_init__(self) -> None:
        if not 0 <= self.value <= 10:
            raise ValueError("Quality score must be between 0 and 10")

    def is_acceptable(self, threshold: float = 7.0) -> bool:
        return self.value >= threshold

