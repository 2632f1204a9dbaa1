"""Pluggable quality scoring for candidate units."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Protocol

from serialforge.domains.continuity.domain import CandidateUnit, ContinuityState
from serialforge.services.continuity.line_classifier import classify_body

QUALITY_WEIGHTS = {
    "plot": 0.30,
    "character": 0.25,
    "style": 0.25,
    "tone": 0.20,
}


def clamp_score(value: float) -> float:
    """Bound a score to 0-10; a non-finite score counts as 0."""
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(10.0, value))


@dataclass(frozen=True)
class QualityReport:
    plot: float
    character: float
    style: float
    tone: float

    def clamped(self) -> "QualityReport":
        return QualityReport(
            plot=clamp_score(self.plot),
            character=clamp_score(self.character),
            style=clamp_score(self.style),
            tone=clamp_score(self.tone),
        )

    @property
    def overall(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in QUALITY_WEIGHTS.items())

    def to_dict(self) -> Dict[str, float]:
        return {
            "plot": round(self.plot, 2),
            "character": round(self.character, 2),
            "style": round(self.style, 2),
            "tone": round(self.tone, 2),
            "overall": round(self.overall, 2),
        }


class QualityScorer(Protocol):
    def score(self, candidate: CandidateUnit, state: ContinuityState) -> QualityReport:
        ...


class HeuristicQualityScorer:
    """Deterministic scorer built from the unit's own metadata and line mix.

    Plot rewards events and thread movement, character rewards cast and
    development, style rewards lexical diversity, tone rewards a varied mix
    of dialogue, monologue, action and narrative lines.
    """

    def score(self, candidate: CandidateUnit, state: ContinuityState) -> QualityReport:
        facts = candidate.facts
        threads = (
            len(facts.foreshadowing_planted)
            + len(facts.foreshadowing_resolved)
            + len(facts.subplots_opened)
            + len(facts.subplots_resolved)
            + len(facts.promises_made)
            + len(facts.promises_fulfilled)
        )
        plot = 5.0 + 1.0 * len(facts.events) + 0.5 * threads + (1.0 if facts.cliffhanger else 0.0)

        development = len(facts.changes) + len(facts.state_updates) + len(facts.relationship_updates)
        character = 5.0 + 0.5 * len(facts.named_characters()) + 0.5 * development

        words = candidate.unit.body.lower().split()
        diversity = len(set(words)) / len(words) if words else 0.0
        style = 4.0 + 6.0 * min(1.0, diversity / 0.5)

        kinds = {type(line) for line in classify_body(candidate.unit.body)}
        tone = 4.0 + 1.5 * len(kinds)

        return QualityReport(plot=plot, character=character, style=style, tone=tone).clamped()
