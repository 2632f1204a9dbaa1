"""Continuity tracker: checks candidates against history and applies accepted units."""
from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from serialforge.core.config import Settings
from serialforge.domains.content.domain import Work
from serialforge.domains.continuity.domain import (
    CandidateUnit,
    CharacterIntroduction,
    CharacterProfile,
    CharacterPromise,
    ContinuitySeed,
    ContinuityState,
    EstablishedFact,
    ForeshadowingItem,
    PlotProgress,
    Subplot,
    TimelineEvent,
    UnitDigest,
    UnitFacts,
    normalize_name,
)
from serialforge.shared_kernel import ContinuityError, ValidationResult

from .context_builder import CompressionLevel, ContextBuilder, GenerationContext
from .line_classifier import classify_body, dialogue_lines

logger = logging.getLogger(__name__)

CHECK = "continuity"
MAX_DIALOGUE_EXCERPTS = 5


def _mentions(term: str, text: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", text, flags=re.IGNORECASE) is not None


class ContinuityTracker:
    """Single owner of a work's ContinuityState.

    ``validate_against_history`` never mutates; ``commit`` returns a new
    state and is only called for accepted units.
    """

    def __init__(self, settings: Settings, context_builder: Optional[ContextBuilder] = None) -> None:
        self.settings = settings
        self.context_builder = context_builder or ContextBuilder(settings)

    # ------------------------------------------------------------------
    # Setup and context
    # ------------------------------------------------------------------

    def initialize(self, work: Work, seed: ContinuitySeed) -> ContinuityState:
        state = ContinuityState(
            work_slug=work.slug,
            world=seed.world.model_copy(deep=True),
            plot=PlotProgress(
                arc_stage=seed.arc_stage,
                relationship_stage=seed.relationship_stage,
            ),
        )
        self._register(state, seed.characters, unit_number=0)
        for index, description in enumerate(seed.subplots, start=1):
            state.plot.subplots.append(Subplot(id=f"sp-0-{index}", description=description))
        for index, plant in enumerate(seed.foreshadowing, start=1):
            state.plot.foreshadowing.append(
                ForeshadowingItem(
                    id=plant.id or f"fs-0-{index}",
                    content=plant.content,
                    category=plant.category,
                )
            )
        logger.info("Initialized continuity for %s with %s characters", work.slug, len(state.characters))
        return state

    def build_context(
        self,
        work: Work,
        state: ContinuityState,
        compression: CompressionLevel = CompressionLevel.NONE,
    ) -> GenerationContext:
        return self.context_builder.build(work, state, compression)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_against_history(
        self, work: Work, state: ContinuityState, candidate: CandidateUnit
    ) -> ValidationResult:
        """Run the character, ability, timeline and world checks; all of them, always."""
        result = ValidationResult()
        facts = candidate.facts
        for error in (
            self._check_characters(state, facts)
            + self._check_abilities(state, facts)
            + self._check_timeline(state, facts)
            + self._check_world(state, candidate)
        ):
            result.add(CHECK, error)
        if not result.passed:
            logger.info(
                "Unit %s of %s has %s continuity violations",
                candidate.unit.number,
                work.slug,
                len(result.reasons),
            )
        return result

    def _check_characters(self, state: ContinuityState, facts: UnitFacts) -> List[ContinuityError]:
        errors = []
        for name in facts.named_characters():
            if state.find_character(name) is None and facts.introduced(name) is None:
                errors.append(
                    ContinuityError(
                        f"Character '{name}' is neither registered nor introduced",
                        fact=f"character:{name}",
                        code="UNKNOWN_CHARACTER",
                    )
                )
        return errors

    def _check_abilities(self, state: ContinuityState, facts: UnitFacts) -> List[ContinuityError]:
        errors = []
        for change in facts.changes:
            if not change.justified:
                errors.append(
                    ContinuityError(
                        f"Change to '{change.character}' has no stated cause",
                        fact=f"change:{change.character}",
                        code="UNJUSTIFIED_CHANGE",
                    )
                )

        def covered(name: str, item: str, attr: str) -> bool:
            wanted = normalize_name(item)
            return any(
                change.justified and wanted in {normalize_name(v) for v in getattr(change, attr)}
                for change in facts.changes_for(name)
            )

        for name, abilities in facts.ability_uses.items():
            profile = state.find_character(name)
            intro = facts.introduced(name)
            known = {normalize_name(a) for a in intro.abilities} if intro else set()
            for ability in abilities:
                if profile is not None and profile.has_ability(ability):
                    continue
                if normalize_name(ability) in known or covered(name, ability, "gained_abilities"):
                    continue
                errors.append(
                    ContinuityError(
                        f"'{name}' uses ability '{ability}' not in their profile",
                        fact=f"ability:{name}:{ability}",
                        code="UNKNOWN_ABILITY",
                    )
                )

        for name, traits in facts.trait_displays.items():
            profile = state.find_character(name)
            intro = facts.introduced(name)
            known = {normalize_name(t) for t in intro.personality} if intro else set()
            for trait in traits:
                if profile is not None and profile.has_trait(trait):
                    continue
                if normalize_name(trait) in known or covered(name, trait, "gained_traits"):
                    continue
                errors.append(
                    ContinuityError(
                        f"'{name}' shows trait '{trait}' not in their profile",
                        fact=f"trait:{name}:{trait}",
                        code="UNKNOWN_TRAIT",
                    )
                )

        revived = {
            normalize_name(update.character)
            for update in facts.state_updates
            if update.alive and any(c.justified for c in facts.changes_for(update.character))
        }
        actors = set(facts.ability_uses)
        for event in facts.events:
            if not event.flashback:
                actors.update(event.participants)
        for name in sorted(actors):
            profile = state.find_character(name)
            if profile is None or profile.state.alive or normalize_name(name) in revived:
                continue
            errors.append(
                ContinuityError(
                    f"'{profile.name}' is dead and cannot act outside a flashback",
                    fact=f"alive:{profile.name}",
                    code="DEAD_CHARACTER",
                )
            )
        return errors

    def _check_timeline(self, state: ContinuityState, facts: UnitFacts) -> List[ContinuityError]:
        errors = []
        checkpoint = state.checkpoint
        for name, location in facts.opening_locations.items():
            profile = state.find_character(name)
            if profile is None:
                continue
            last = profile.state.location or checkpoint.last_known_location(profile.id)
            if last and normalize_name(last) != normalize_name(location):
                errors.append(
                    ContinuityError(
                        f"'{profile.name}' opens in '{location}' but was last in '{last}'",
                        fact=f"location:{profile.name}",
                        code="LOCATION_MISMATCH",
                        details={"expected": last, "claimed": location},
                    )
                )

        latest = checkpoint.latest_story_time()
        for event in facts.events:
            if event.flashback or event.story_time is None:
                continue
            if event.story_time < latest:
                errors.append(
                    ContinuityError(
                        f"Event '{event.description}' at time {event.story_time} precedes time {latest}",
                        fact=f"timeline:{event.description}",
                        code="TIMELINE_REGRESSION",
                        details={"story_time": event.story_time, "latest": latest},
                    )
                )

        plot = state.plot
        open_ids = {
            "foreshadowing": {item.id for item in plot.open_foreshadowing()},
            "subplot": {item.id for item in plot.open_subplots()},
            "promise": {item.id for item in plot.open_promises()},
        }
        referenced = {
            "foreshadowing": facts.foreshadowing_resolved,
            "subplot": facts.subplots_resolved,
            "promise": facts.promises_fulfilled,
        }
        for kind, ids in referenced.items():
            for thread_id in ids:
                if thread_id not in open_ids[kind]:
                    errors.append(
                        ContinuityError(
                            f"Cannot resolve {kind} '{thread_id}': unknown or already resolved",
                            fact=f"{kind}:{thread_id}",
                            code="UNKNOWN_THREAD",
                        )
                    )
        return errors

    def _check_world(self, state: ContinuityState, candidate: CandidateUnit) -> List[ContinuityError]:
        errors = []
        facts = candidate.facts
        world = state.world
        claims = " ".join(
            [candidate.unit.body]
            + [event.description for event in facts.events]
            + [item for items in facts.ability_uses.values() for item in items]
        )
        for rule in world.rules:
            for term in rule.prohibited_terms:
                if term.strip() and _mentions(term, claims):
                    errors.append(
                        ContinuityError(
                            f"World rule '{rule.id}' forbids '{term}': {rule.statement}",
                            fact=f"rule:{rule.id}",
                            code="WORLD_RULE",
                            details={"term": term},
                        )
                    )

        introduced = {normalize_name(loc) for loc in facts.new_locations}
        referenced: List[str] = [e.location for e in facts.events if e.location]
        referenced += list(facts.opening_locations.values())
        referenced += [u.location for u in facts.state_updates if u.location]
        for location in _unique(referenced):
            if not world.knows_location(location) and normalize_name(location) not in introduced:
                errors.append(
                    ContinuityError(
                        f"Location '{location}' is not part of the known geography",
                        fact=f"location:{location}",
                        code="UNKNOWN_LOCATION",
                    )
                )

        for amendment in facts.world_amendments:
            if not world.is_amendable(amendment.key):
                errors.append(
                    ContinuityError(
                        f"World fact '{amendment.key}' is immutable",
                        fact=f"world:{amendment.key}",
                        code="IMMUTABLE_FACT",
                    )
                )
        return errors

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self, work: Work, state: ContinuityState, candidate: CandidateUnit) -> ContinuityState:
        """Apply an accepted unit and return the resulting state."""
        unit = candidate.unit
        facts = candidate.facts
        number = unit.number
        new = state.model_copy(deep=True)

        self._register(new, facts.introductions, unit_number=number)
        self._apply_changes(new, facts)
        self._apply_relationships(new, facts)
        self._apply_world(new, facts, number)
        self._apply_threads(new, facts, number)
        self._apply_events(new, facts, number)

        dialogue = dialogue_lines(classify_body(unit.body))[:MAX_DIALOGUE_EXCERPTS]
        new.digests.append(
            UnitDigest(
                number=number,
                title=unit.title,
                summary=facts.summary,
                ending_state=facts.ending_state,
                cliffhanger=facts.cliffhanger,
                key_events=[event.description for event in facts.events],
                dialogue_excerpts=dialogue,
            )
        )
        new.last_unit = max(new.last_unit, number)
        logger.info("Committed continuity for %s unit %s", work.slug, number)
        return new

    def _register(
        self, state: ContinuityState, intros: Iterable[CharacterIntroduction], unit_number: int
    ) -> None:
        added: List[tuple] = []
        for intro in intros:
            if state.find_character(intro.name) is not None:
                logger.debug("Character %s already registered, skipping", intro.name)
                continue
            profile = CharacterProfile(
                id=uuid4().hex,
                name=intro.name,
                aliases=list(intro.aliases),
                role=intro.role,
                abilities=list(intro.abilities),
                personality=list(intro.personality),
                state=intro.state.model_copy(),
                introduced_in=unit_number,
            )
            state.characters[profile.id] = profile
            added.append((profile, intro))
        # relationships name other characters, resolved once everyone is registered
        for profile, intro in added:
            for target_name, label in intro.relationships.items():
                target = state.find_character(target_name)
                if target is None:
                    logger.warning("Dropping relationship %s -> %s: unknown target", profile.name, target_name)
                    continue
                profile.relationships[target.id] = label

    def _apply_changes(self, state: ContinuityState, facts: UnitFacts) -> None:
        for change in facts.changes:
            profile = state.find_character(change.character)
            if profile is None:
                continue
            profile.abilities = _merge(profile.abilities, change.gained_abilities, change.lost_abilities)
            profile.personality = _merge(profile.personality, change.gained_traits, change.lost_traits)

        for name, location in facts.opening_locations.items():
            profile = state.find_character(name)
            if profile is not None:
                profile.state.location = location

        for update in facts.state_updates:
            profile = state.find_character(update.character)
            if profile is None:
                continue
            if update.location is not None:
                profile.state.location = update.location
            if update.emotional_state is not None:
                profile.state.emotional_state = update.emotional_state
            if update.power_level is not None:
                profile.state.power_level = update.power_level
            if update.alive is not None:
                profile.state.alive = update.alive
            if update.arc_progress is not None:
                profile.arc_progress = update.arc_progress

    def _apply_relationships(self, state: ContinuityState, facts: UnitFacts) -> None:
        for update in facts.relationship_updates:
            source = state.find_character(update.source)
            target = state.find_character(update.target)
            if source is None or target is None:
                continue
            source.relationships[target.id] = update.label

    def _apply_world(self, state: ContinuityState, facts: UnitFacts, number: int) -> None:
        world = state.world
        for location in facts.new_locations:
            if not world.knows_location(location):
                world.geography.append(location)
        for amendment in facts.world_amendments:
            world.facts.append(
                EstablishedFact(
                    key=amendment.key,
                    value=amendment.value,
                    unit_number=number,
                    justification=amendment.justification,
                )
            )

    def _apply_threads(self, state: ContinuityState, facts: UnitFacts, number: int) -> None:
        plot = state.plot
        for index, plant in enumerate(facts.foreshadowing_planted, start=1):
            plot.foreshadowing.append(
                ForeshadowingItem(
                    id=plant.id or f"fs-{number}-{index}",
                    content=plant.content,
                    category=plant.category,
                    planted_in=number,
                )
            )
        for index, description in enumerate(facts.subplots_opened, start=1):
            plot.subplots.append(Subplot(id=f"sp-{number}-{index}", description=description, opened_in=number))
        for index, record in enumerate(facts.promises_made, start=1):
            promiser = state.find_character(record.promiser)
            promisee = state.find_character(record.promisee)
            plot.promises.append(
                CharacterPromise(
                    id=record.id or f"pr-{number}-{index}",
                    promiser=promiser.id if promiser else record.promiser,
                    promisee=promisee.id if promisee else record.promisee,
                    content=record.content,
                    made_in=number,
                )
            )

        resolved_fs = set(facts.foreshadowing_resolved)
        for item in plot.foreshadowing:
            if item.id in resolved_fs and not item.resolved:
                item.resolved_in = number
        resolved_sp = set(facts.subplots_resolved)
        for subplot in plot.subplots:
            if subplot.id in resolved_sp and not subplot.resolved:
                subplot.resolved_in = number
        fulfilled = set(facts.promises_fulfilled)
        for promise in plot.promises:
            if promise.id in fulfilled and not promise.fulfilled:
                promise.fulfilled_in = number

        # stages only move forward
        if facts.arc_stage is not None and facts.arc_stage.progress > plot.arc_stage.progress:
            plot.arc_stage = facts.arc_stage
        if (
            facts.relationship_stage is not None
            and facts.relationship_stage.progress > plot.relationship_stage.progress
        ):
            plot.relationship_stage = facts.relationship_stage

    def _apply_events(self, state: ContinuityState, facts: UnitFacts, number: int) -> None:
        latest = state.checkpoint.latest_story_time()
        for event in facts.events:
            participants = []
            for name in event.participants:
                profile = state.find_character(name)
                participants.append(profile.id if profile else name)
            story_time = event.story_time if event.story_time is not None else latest
            state.checkpoint.events.append(
                TimelineEvent(
                    unit_number=number,
                    story_time=story_time,
                    description=event.description,
                    participants=participants,
                    location=event.location,
                    significance=event.significance,
                    flashback=event.flashback,
                )
            )
            if not event.flashback:
                latest = max(latest, story_time)
                if event.location:
                    for character_id in participants:
                        profile = state.characters.get(character_id)
                        if profile is not None:
                            profile.state.location = event.location


def _merge(current: List[str], gained: List[str], lost: List[str]) -> List[str]:
    dropped = {normalize_name(item) for item in lost}
    merged = [item for item in current if normalize_name(item) not in dropped]
    present = {normalize_name(item) for item in merged}
    for item in gained:
        if normalize_name(item) not in present:
            merged.append(item)
            present.add(normalize_name(item))
    return merged


def _unique(values: Iterable[str]) -> List[str]:
    seen: Dict[str, str] = {}
    for value in values:
        seen.setdefault(normalize_name(value), value)
    return list(seen.values())
