"""Continuity domain: characters, world, plot threads and timeline."""

from .entities import (
    ArcStage,
    CharacterProfile,
    CharacterRole,
    CharacterState,
    CharacterPromise,
    ContinuityCheckpoint,
    ContinuityState,
    EstablishedFact,
    ForeshadowingItem,
    PlotProgress,
    RelationshipStage,
    Significance,
    Subplot,
    TimelineEvent,
    UnitDigest,
    WorldModel,
    WorldRule,
    normalize_name,
)
from .facts import (
    CandidateUnit,
    CharacterChange,
    CharacterIntroduction,
    ClaimedEvent,
    ContinuitySeed,
    ForeshadowingPlant,
    PromiseRecord,
    RelationshipUpdate,
    StateUpdate,
    UnitFacts,
    WorldAmendment,
)

__all__ = [
    "ArcStage",
    "CharacterProfile",
    "CharacterRole",
    "CharacterState",
    "CharacterPromise",
    "ContinuityCheckpoint",
    "ContinuityState",
    "EstablishedFact",
    "ForeshadowingItem",
    "PlotProgress",
    "RelationshipStage",
    "Significance",
    "Subplot",
    "TimelineEvent",
    "UnitDigest",
    "WorldModel",
    "WorldRule",
    "normalize_name",
    "CandidateUnit",
    "CharacterChange",
    "CharacterIntroduction",
    "ClaimedEvent",
    "ContinuitySeed",
    "ForeshadowingPlant",
    "PromiseRecord",
    "RelationshipUpdate",
    "StateUpdate",
    "UnitFacts",
    "WorldAmendment",
]
