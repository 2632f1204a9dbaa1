"""Validation gate and quality scoring."""

from .gate import CHECKS, ValidationGate, duplicate_ratio, split_sentences
from .scoring import (
    QUALITY_WEIGHTS,
    HeuristicQualityScorer,
    QualityReport,
    QualityScorer,
    clamp_score,
)

__all__ = [
    "CHECKS",
    "ValidationGate",
    "duplicate_ratio",
    "split_sentences",
    "QUALITY_WEIGHTS",
    "HeuristicQualityScorer",
    "QualityReport",
    "QualityScorer",
    "clamp_score",
]
