"""Tiered generation context with budget-driven compression."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from serialforge.core.config import Settings
from serialforge.domains.content.domain import Work
from serialforge.domains.continuity.domain import CharacterRole, ContinuityState, UnitDigest

logger = logging.getLogger(__name__)


class CompressionLevel(str, Enum):
    NONE = "none"
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"

    @property
    def rank(self) -> int:
        return list(CompressionLevel).index(self)


@dataclass
class GenerationContext:
    """What the generator sees of a work before writing the next unit.

    ``essential`` and ``immediate`` are always present; ``recent`` and
    ``optional`` are dropped under compression.
    """

    work_slug: str
    next_unit: int
    essential: Dict[str, Any]
    immediate: Dict[str, Any]
    recent: Dict[str, Any] = field(default_factory=dict)
    optional: Dict[str, Any] = field(default_factory=dict)
    compression_level: CompressionLevel = CompressionLevel.NONE
    token_estimate: int = 0

    def tiers(self) -> Dict[str, Dict[str, Any]]:
        tiers = {"essential": self.essential, "immediate": self.immediate}
        if self.recent:
            tiers["recent"] = self.recent
        if self.optional:
            tiers["optional"] = self.optional
        return tiers

    def to_dict(self) -> Dict[str, Any]:
        return {
            "work_slug": self.work_slug,
            "next_unit": self.next_unit,
            **self.tiers(),
            "compression_level": self.compression_level.value,
            "token_estimate": self.token_estimate,
        }

    def render(self) -> str:
        """Plain-text rendering, one section per tier."""
        sections = []
        for title, content in self.tiers().items():
            body = json.dumps(content, ensure_ascii=False, indent=1, default=str)
            sections.append(f"### {title.upper()}\n{body}\n")
        return "\n".join(sections)


def estimate_tokens(payload: Dict[str, Any], chars_per_token: float) -> int:
    text = json.dumps(payload, ensure_ascii=False, default=str)
    return math.ceil(len(text) / chars_per_token)


class ContextBuilder:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def build(
        self,
        work: Work,
        state: ContinuityState,
        compression: CompressionLevel = CompressionLevel.NONE,
    ) -> GenerationContext:
        keep = self.settings.CONTEXT_RECENT_UNITS
        recent_digests = state.digests[-keep:] if keep > 0 else []
        context = GenerationContext(
            work_slug=work.slug,
            next_unit=state.last_unit + 1,
            essential=self._essential(work, state),
            immediate=self._immediate(state),
            recent=self._recent(recent_digests),
            optional=self._optional(state, recent_digests),
        )
        self._apply_level(context, compression)
        self._fit_budget(context)
        return context

    def _essential(self, work: Work, state: ContinuityState) -> Dict[str, Any]:
        return {
            "title": work.title,
            "summary": work.summary,
            "tags": sorted(work.tags),
            "planned_units": work.planned_units,
            "main_characters": [
                profile.model_dump(mode="json")
                for profile in state.characters_by_role(CharacterRole.MAIN)
            ],
            "world_rules": [rule.statement for rule in state.world.rules],
            "magic_system": state.world.magic_system,
            "arc_stage": state.plot.arc_stage.value,
            "relationship_stage": state.plot.relationship_stage.value,
            "world_facts": {
                key: state.world.current_fact(key).value
                for key in dict.fromkeys(fact.key for fact in state.world.facts)
            },
        }

    def _immediate(self, state: ContinuityState) -> Dict[str, Any]:
        previous = state.digest_for(state.last_unit)
        return {
            "previous_ending": previous.ending_state if previous else "",
            "cliffhanger": previous.cliffhanger if previous else None,
            "active_conflicts": [item.description for item in state.plot.open_subplots()],
            "open_promises": [
                {
                    "id": promise.id,
                    "promiser": state.character_name(promise.promiser),
                    "promisee": state.character_name(promise.promisee),
                    "content": promise.content,
                }
                for promise in state.plot.open_promises()
            ],
            "character_states": {
                profile.name: profile.state.model_dump(mode="json")
                for profile in state.characters.values()
                if profile.role != CharacterRole.MINOR
            },
        }

    def _recent(self, digests: List[UnitDigest]) -> Dict[str, Any]:
        if not digests:
            return {}
        return {
            "units": [
                {"number": d.number, "title": d.title, "summary": d.summary}
                for d in digests
            ],
            "plot_points": [event for d in digests for event in d.key_events],
            "dialogue": [line for d in digests for line in d.dialogue_excerpts],
        }

    def _optional(self, state: ContinuityState, recent: List[UnitDigest]) -> Dict[str, Any]:
        first_recent = recent[0].number if recent else state.last_unit + 1
        minor = [
            {"name": p.name, "aliases": p.aliases, "location": p.state.location}
            for p in state.characters_by_role(CharacterRole.MINOR)
        ]
        history = [
            {"unit": e.unit_number, "description": e.description}
            for e in state.checkpoint.events
            if e.unit_number < first_recent
        ]
        if not minor and not history:
            return {}
        return {"minor_characters": minor, "historical_events": history}

    @staticmethod
    def _apply_level(context: GenerationContext, level: CompressionLevel) -> None:
        if level.rank >= CompressionLevel.LIGHT.rank:
            context.optional = {}
        if level == CompressionLevel.MEDIUM and context.recent:
            context.recent = {k: v for k, v in context.recent.items() if k != "dialogue"}
        if level == CompressionLevel.HEAVY:
            context.recent = {}
        context.compression_level = level

    def _measure(self, context: GenerationContext) -> int:
        payload = context.to_dict()
        payload.pop("token_estimate")
        return estimate_tokens(payload, self.settings.CONTEXT_CHARS_PER_TOKEN)

    def _fit_budget(self, context: GenerationContext) -> None:
        budget = self.settings.CONTEXT_TOKEN_BUDGET
        context.token_estimate = self._measure(context)
        if context.token_estimate > budget and context.optional:
            context.optional = {}
            context.compression_level = max(
                context.compression_level, CompressionLevel.LIGHT, key=lambda lvl: lvl.rank
            )
            context.token_estimate = self._measure(context)
        if context.token_estimate > budget and context.recent:
            context.recent = {}
            context.compression_level = CompressionLevel.HEAVY
            context.token_estimate = self._measure(context)
        if context.token_estimate > budget:
            logger.warning(
                "Context for %s still over budget (%s > %s tokens)",
                context.work_slug,
                context.token_estimate,
                budget,
            )
