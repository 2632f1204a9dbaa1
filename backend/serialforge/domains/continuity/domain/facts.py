"""Structured facts a candidate unit asserts, referenced by character name."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import Field

from serialforge.domains.content.domain import Unit
from .entities import (
    ArcStage,
    CharacterRole,
    CharacterState,
    RelationshipStage,
    Significance,
    StrictModel,
    WorldModel,
    normalize_name,
)


class CharacterIntroduction(StrictModel):
    name: str = Field(..., min_length=1)
    aliases: List[str] = Field(default_factory=list)
    role: CharacterRole = CharacterRole.SUPPORTING
    abilities: List[str] = Field(default_factory=list)
    personality: List[str] = Field(default_factory=list)
    relationships: Dict[str, str] = Field(default_factory=dict)
    state: CharacterState = Field(default_factory=CharacterState)


class CharacterChange(StrictModel):
    """Explicit, causally justified change to a character's profile."""

    character: str
    gained_abilities: List[str] = Field(default_factory=list)
    lost_abilities: List[str] = Field(default_factory=list)
    gained_traits: List[str] = Field(default_factory=list)
    lost_traits: List[str] = Field(default_factory=list)
    cause: str = ""

    @property
    def justified(self) -> bool:
        return bool(self.cause.strip())


class StateUpdate(StrictModel):
    character: str
    location: Optional[str] = None
    emotional_state: Optional[str] = None
    power_level: Optional[int] = Field(None, ge=0)
    alive: Optional[bool] = None
    arc_progress: Optional[int] = Field(None, ge=0, le=100)


class ClaimedEvent(StrictModel):
    description: str
    participants: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    story_time: Optional[int] = Field(None, ge=0)
    significance: Significance = Significance.MEDIUM
    flashback: bool = False


class RelationshipUpdate(StrictModel):
    source: str
    target: str
    label: str


class WorldAmendment(StrictModel):
    key: str
    value: str
    justification: str = ""


class ForeshadowingPlant(StrictModel):
    id: Optional[str] = None
    content: str
    category: str = Field("plot", pattern="^(plot|character|relationship|world)$")


class PromiseRecord(StrictModel):
    id: Optional[str] = None
    promiser: str
    promisee: str
    content: str


class UnitFacts(StrictModel):
    """Metadata the generator returns alongside the prose of a unit."""

    summary: str = ""
    ending_state: str = ""
    cliffhanger: Optional[str] = None
    characters_mentioned: List[str] = Field(default_factory=list)
    introductions: List[CharacterIntroduction] = Field(default_factory=list)
    ability_uses: Dict[str, List[str]] = Field(default_factory=dict)
    trait_displays: Dict[str, List[str]] = Field(default_factory=dict)
    changes: List[CharacterChange] = Field(default_factory=list)
    state_updates: List[StateUpdate] = Field(default_factory=list)
    opening_locations: Dict[str, str] = Field(default_factory=dict)
    events: List[ClaimedEvent] = Field(default_factory=list)
    relationship_updates: List[RelationshipUpdate] = Field(default_factory=list)
    new_locations: List[str] = Field(default_factory=list)
    world_amendments: List[WorldAmendment] = Field(default_factory=list)
    foreshadowing_planted: List[ForeshadowingPlant] = Field(default_factory=list)
    foreshadowing_resolved: List[str] = Field(default_factory=list)
    subplots_opened: List[str] = Field(default_factory=list)
    subplots_resolved: List[str] = Field(default_factory=list)
    promises_made: List[PromiseRecord] = Field(default_factory=list)
    promises_fulfilled: List[str] = Field(default_factory=list)
    arc_stage: Optional[ArcStage] = None
    relationship_stage: Optional[RelationshipStage] = None

    def named_characters(self) -> List[str]:
        """Every character name the unit refers to, in first-seen order."""
        names: List[str] = list(self.characters_mentioned)
        for event in self.events:
            names.extend(event.participants)
        names.extend(self.ability_uses)
        names.extend(self.trait_displays)
        names.extend(change.character for change in self.changes)
        names.extend(update.character for update in self.state_updates)
        names.extend(self.opening_locations)
        for update in self.relationship_updates:
            names.extend([update.source, update.target])
        for promise in self.promises_made:
            names.extend([promise.promiser, promise.promisee])
        seen: Dict[str, str] = {}
        for name in names:
            key = normalize_name(name)
            if key and key not in seen:
                seen[key] = name
        return list(seen.values())

    def introduced(self, name: str) -> Optional[CharacterIntroduction]:
        wanted = normalize_name(name)
        for intro in self.introductions:
            if wanted == normalize_name(intro.name) or any(
                wanted == normalize_name(alias) for alias in intro.aliases
            ):
                return intro
        return None

    def changes_for(self, name: str) -> List[CharacterChange]:
        wanted = normalize_name(name)
        return [c for c in self.changes if normalize_name(c.character) == wanted]


class ContinuitySeed(StrictModel):
    """Initial bible of a new work, supplied by the generator."""

    characters: List[CharacterIntroduction] = Field(default_factory=list)
    world: WorldModel = Field(default_factory=WorldModel)
    arc_stage: ArcStage = ArcStage.EXPOSITION
    relationship_stage: RelationshipStage = RelationshipStage.HOSTILITY
    subplots: List[str] = Field(default_factory=list)
    foreshadowing: List[ForeshadowingPlant] = Field(default_factory=list)


@dataclass(frozen=True)
class CandidateUnit:
    """A generated unit awaiting validation."""

    unit: Unit
    facts: UnitFacts
