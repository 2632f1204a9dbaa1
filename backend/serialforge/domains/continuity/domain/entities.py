"""Continuity domain entities: the accumulated narrative state of a work."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def normalize_name(value: str) -> str:
    return " ".join(value.lower().split())


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class CharacterRole(str, Enum):
    MAIN = "main"
    SUPPORTING = "supporting"
    MINOR = "minor"


class ArcStage(str, Enum):
    EXPOSITION = "exposition"
    RISING_ACTION = "rising_action"
    CLIMAX = "climax"
    FALLING_ACTION = "falling_action"
    RESOLUTION = "resolution"

    @property
    def progress(self) -> float:
        stages = list(ArcStage)
        return stages.index(self) / (len(stages) - 1) * 100


class RelationshipStage(str, Enum):
    HOSTILITY = "hostility"
    TENSION = "tension"
    ATTRACTION = "attraction"
    CONFESSION = "confession"
    UNION = "union"

    @property
    def progress(self) -> float:
        stages = list(RelationshipStage)
        return stages.index(self) / (len(stages) - 1) * 100


class Significance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CharacterState(StrictModel):
    location: str = ""
    emotional_state: str = ""
    power_level: int = Field(0, ge=0)
    alive: bool = True


class CharacterProfile(StrictModel):
    """A character in the arena; ``id`` is the key, ``name`` is display only."""

    id: str
    name: str = Field(..., min_length=1)
    aliases: List[str] = Field(default_factory=list)
    role: CharacterRole = CharacterRole.SUPPORTING
    abilities: List[str] = Field(default_factory=list)
    personality: List[str] = Field(default_factory=list)
    relationships: Dict[str, str] = Field(default_factory=dict)
    state: CharacterState = Field(default_factory=CharacterState)
    arc_progress: int = Field(0, ge=0, le=100)
    introduced_in: int = Field(0, ge=0)

    def answers_to(self, name: str) -> bool:
        wanted = normalize_name(name)
        return wanted == normalize_name(self.name) or any(
            wanted == normalize_name(alias) for alias in self.aliases
        )

    def has_ability(self, ability: str) -> bool:
        wanted = normalize_name(ability)
        return any(normalize_name(item) == wanted for item in self.abilities)

    def has_trait(self, trait: str) -> bool:
        wanted = normalize_name(trait)
        return any(normalize_name(item) == wanted for item in self.personality)


class WorldRule(StrictModel):
    id: str
    statement: str
    prohibited_terms: List[str] = Field(default_factory=list)


class EstablishedFact(StrictModel):
    key: str
    value: str
    unit_number: int = Field(..., ge=0)
    justification: str = ""


class WorldModel(StrictModel):
    """Immutable rules plus a ledger of amendable, unit-cited facts."""

    rules: List[WorldRule] = Field(default_factory=list)
    magic_system: str = ""
    geography: List[str] = Field(default_factory=list)
    social_hierarchy: List[str] = Field(default_factory=list)
    amendable_keys: List[str] = Field(default_factory=list)
    facts: List[EstablishedFact] = Field(default_factory=list)

    def knows_location(self, name: str) -> bool:
        wanted = normalize_name(name)
        return any(normalize_name(item) == wanted for item in self.geography)

    def is_amendable(self, key: str) -> bool:
        return key in self.amendable_keys

    def current_fact(self, key: str) -> Optional[EstablishedFact]:
        matches = [fact for fact in self.facts if fact.key == key]
        return matches[-1] if matches else None


class Subplot(StrictModel):
    id: str
    description: str
    opened_in: int = Field(0, ge=0)
    resolved_in: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.resolved_in is not None


class ForeshadowingItem(StrictModel):
    id: str
    content: str
    category: str = Field("plot", pattern="^(plot|character|relationship|world)$")
    planted_in: int = Field(0, ge=0)
    resolved_in: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.resolved_in is not None


class CharacterPromise(StrictModel):
    id: str
    promiser: str
    promisee: str
    content: str
    made_in: int = Field(0, ge=0)
    fulfilled_in: Optional[int] = None

    @property
    def fulfilled(self) -> bool:
        return self.fulfilled_in is not None


class PlotProgress(StrictModel):
    arc_stage: ArcStage = ArcStage.EXPOSITION
    relationship_stage: RelationshipStage = RelationshipStage.HOSTILITY
    subplots: List[Subplot] = Field(default_factory=list)
    foreshadowing: List[ForeshadowingItem] = Field(default_factory=list)
    promises: List[CharacterPromise] = Field(default_factory=list)

    def open_subplots(self) -> List[Subplot]:
        return [item for item in self.subplots if not item.resolved]

    def open_foreshadowing(self) -> List[ForeshadowingItem]:
        return [item for item in self.foreshadowing if not item.resolved]

    def open_promises(self) -> List[CharacterPromise]:
        return [item for item in self.promises if not item.fulfilled]


class TimelineEvent(StrictModel):
    unit_number: int = Field(..., ge=0)
    story_time: int = Field(0, ge=0)
    description: str
    participants: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    significance: Significance = Significance.MEDIUM
    flashback: bool = False


class ContinuityCheckpoint(StrictModel):
    """Timeline of significant events, keyed by character ids."""

    events: List[TimelineEvent] = Field(default_factory=list)

    def events_as_of(self, unit_number: int) -> List[TimelineEvent]:
        return [event for event in self.events if event.unit_number <= unit_number]

    def latest_story_time(self, as_of: Optional[int] = None) -> int:
        events = self.events if as_of is None else self.events_as_of(as_of)
        times = [event.story_time for event in events if not event.flashback]
        return max(times) if times else 0

    def last_known_location(self, character_id: str, as_of: Optional[int] = None) -> Optional[str]:
        events = self.events if as_of is None else self.events_as_of(as_of)
        for event in reversed(events):
            if event.flashback or not event.location:
                continue
            if character_id in event.participants:
                return event.location
        return None


class UnitDigest(StrictModel):
    number: int = Field(..., ge=1)
    title: str
    summary: str = ""
    ending_state: str = ""
    cliffhanger: Optional[str] = None
    key_events: List[str] = Field(default_factory=list)
    dialogue_excerpts: List[str] = Field(default_factory=list)


class ContinuityState(StrictModel):
    """Single source of truth for what has happened so far in a work."""

    work_slug: str
    characters: Dict[str, CharacterProfile] = Field(default_factory=dict)
    world: WorldModel = Field(default_factory=WorldModel)
    plot: PlotProgress = Field(default_factory=PlotProgress)
    checkpoint: ContinuityCheckpoint = Field(default_factory=ContinuityCheckpoint)
    digests: List[UnitDigest] = Field(default_factory=list)
    last_unit: int = Field(0, ge=0)

    def find_character(self, name: str) -> Optional[CharacterProfile]:
        for profile in self.characters.values():
            if profile.answers_to(name):
                return profile
        return None

    def characters_by_role(self, role: CharacterRole) -> List[CharacterProfile]:
        return [profile for profile in self.characters.values() if profile.role == role]

    def digest_for(self, number: int) -> Optional[UnitDigest]:
        for digest in self.digests:
            if digest.number == number:
                return digest
        return None

    def character_name(self, character_id: str) -> str:
        profile = self.characters.get(character_id)
        return profile.name if profile else character_id
