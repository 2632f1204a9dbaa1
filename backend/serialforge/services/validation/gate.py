"""Validation gate: the ordered battery every candidate unit must pass."""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from serialforge.core.config import Settings
from serialforge.domains.content.domain import Work
from serialforge.domains.continuity.domain import CandidateUnit, ContinuityState
from serialforge.services.continuity.tracker import ContinuityTracker
from serialforge.shared_kernel import (
    DuplicationError,
    LengthError,
    QualityError,
    QualityScore,
    ValidationError,
    ValidationResult,
    WordCount,
    is_valid_slug,
)

from .scoring import HeuristicQualityScorer, QualityScorer, clamp_score

logger = logging.getLogger(__name__)

CHECKS = ("structural", "length", "duplication", "continuity", "quality")

_SENTENCE_SPLIT = re.compile(r"[.!?]")
_PUNCTUATION = re.compile(r"[^\w\s]")
MIN_SENTENCE_CHARS = 10


def split_sentences(body: str) -> List[str]:
    """Normalized sentences long enough to count for duplication."""
    sentences = []
    for raw in _SENTENCE_SPLIT.split(body):
        if len(raw.strip()) <= MIN_SENTENCE_CHARS:
            continue
        normalized = " ".join(_PUNCTUATION.sub(" ", raw.lower()).split())
        if normalized:
            sentences.append(normalized)
    return sentences


def duplicate_ratio(body: str) -> float:
    sentences = split_sentences(body)
    if not sentences:
        return 0.0
    return (len(sentences) - len(set(sentences))) / len(sentences)


class ValidationGate:
    def __init__(
        self,
        settings: Settings,
        tracker: ContinuityTracker,
        scorer: Optional[QualityScorer] = None,
    ) -> None:
        self.settings = settings
        self.tracker = tracker
        self.scorer = scorer or HeuristicQualityScorer()

    def evaluate(
        self,
        candidate: CandidateUnit,
        state: ContinuityState,
        work: Work,
        expected_number: Optional[int] = None,
    ) -> ValidationResult:
        """Run every check in order; failures accumulate and never short-circuit."""
        result = ValidationResult()
        expected = expected_number if expected_number is not None else state.last_unit + 1
        self._structural(candidate, work, expected, result)
        self._length(candidate, work, result)
        self._duplication(candidate, result)
        result.extend(self.tracker.validate_against_history(work, state, candidate))
        self._quality(candidate, state, result)

        if result.passed:
            logger.info("Unit %s of %s passed validation", candidate.unit.number, work.slug)
        else:
            logger.warning(
                "Unit %s of %s rejected: %s", candidate.unit.number, work.slug, result.summary()
            )
        return result

    def _structural(self, candidate: CandidateUnit, work: Work, expected: int, result: ValidationResult) -> None:
        unit = candidate.unit
        if not unit.title.strip():
            result.add("structural", ValidationError("Unit title is required", code="MISSING_FIELD", details={"field": "title"}))
        if not unit.body.strip():
            result.add("structural", ValidationError("Unit body is required", code="MISSING_FIELD", details={"field": "body"}))
        if not is_valid_slug(unit.work_slug):
            result.add(
                "structural",
                ValidationError(f"Invalid slug '{unit.work_slug}'", code="INVALID_SLUG"),
            )
        elif unit.work_slug != work.slug:
            result.add(
                "structural",
                ValidationError(
                    f"Unit belongs to '{unit.work_slug}', expected '{work.slug}'",
                    code="WRONG_WORK",
                ),
            )
        if unit.number < 1:
            result.add(
                "structural",
                ValidationError(f"Unit number must be positive, got {unit.number}", code="INVALID_NUMBER"),
            )
        elif unit.number != expected:
            result.add(
                "structural",
                ValidationError(
                    f"Unit number {unit.number} does not follow {expected - 1}",
                    code="UNEXPECTED_NUMBER",
                    details={"expected": expected, "actual": unit.number},
                ),
            )

    def _length(self, candidate: CandidateUnit, work: Work, result: ValidationResult) -> None:
        min_words, max_words = work.word_range(self.settings.UNIT_MIN_WORDS, self.settings.UNIT_MAX_WORDS)
        count = WordCount(candidate.unit.word_count)
        result.metrics["word_count"] = count.value
        if count.is_within_range(min_words, max_words):
            return
        words = count.value
        if words < min_words:
            result.add("length", LengthError(f"{words} < {min_words}", details={"words": words, "min": min_words}))
        else:
            result.add("length", LengthError(f"{words} > {max_words}", details={"words": words, "max": max_words}))

    def _duplication(self, candidate: CandidateUnit, result: ValidationResult) -> None:
        ratio = duplicate_ratio(candidate.unit.body)
        threshold = self.settings.DUPLICATE_SENTENCE_THRESHOLD
        result.metrics["duplicate_ratio"] = round(ratio, 4)
        if ratio > threshold:
            result.add(
                "duplication",
                DuplicationError(
                    f"Duplicate sentence ratio {ratio:.2f} exceeds {threshold:.2f}",
                    details={"ratio": ratio, "threshold": threshold},
                ),
            )

    def _quality(self, candidate: CandidateUnit, state: ContinuityState, result: ValidationResult) -> None:
        report = self.scorer.score(candidate, state).clamped()
        minimum = self.settings.QUALITY_MIN_SCORE
        result.metrics["quality"] = report.to_dict()
        if not QualityScore(clamp_score(report.overall)).is_acceptable(minimum):
            result.add(
                "quality",
                QualityError(
                    f"Quality {report.overall:.2f} < {minimum:.2f}",
                    details=report.to_dict(),
                ),
            )
