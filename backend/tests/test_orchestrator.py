import asyncio
import random
from datetime import timedelta

import pytest

from conftest import FIXED_NOW, build_prose
from serialforge.domains.automation.infrastructure import AutomationStateRepository
from serialforge.domains.content.domain import WorkStatus
from serialforge.domains.content.infrastructure import UnitRepository, WorkRepository
from serialforge.domains.continuity.domain import (
    ArcStage,
    RelationshipStage,
    StateUpdate,
    UnitFacts,
)
from serialforge.domains.continuity.infrastructure import ContinuityRepository
from serialforge.infrastructure.storage import InMemoryStorage
from serialforge.schemas import (
    GeneratedCompletion,
    GeneratedUnit,
    GeneratedWork,
    RunOptions,
    UnitDraft,
    WorkDraft,
)
from serialforge.services.concept_diversity import ConceptPicker
from serialforge.services.continuity import ContinuityTracker
from serialforge.services.generator import Generator
from serialforge.services.orchestrator import Orchestrator
from serialforge.services.validation import QualityReport
from serialforge.shared_kernel import GenerationError, NotFoundError, Result, StorageError


class FixedScorer:
    def score(self, candidate, state):
        return QualityReport(plot=8, character=8, style=8, tone=8)


class FakeGenerator(Generator):
    def __init__(self, new_work=None, next_unit=None, completion=None, delay=0.0):
        self.new_work = new_work
        self.next_unit = next_unit
        self.completion = completion
        self.delay = delay
        self.calls = []

    async def _reply(self, name, value):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if value is None:
            return Result.failure(GenerationError(f"no {name} scripted"))
        return Result.success(value)

    async def generate_new_work(self, options):
        self.options = options
        return await self._reply("new_work", self.new_work)

    async def generate_next_unit(self, slug, context, options):
        self.context = context
        return await self._reply("next_unit", self.next_unit)

    async def complete_work(self, slug, context, options):
        self.options = options
        return await self._reply("completion", self.completion)


class FlakyStorage(InMemoryStorage):
    """Memory store whose continuity writes fail once switched on."""

    fail_continuity = False

    def write(self, key, data):
        if self.fail_continuity and key.endswith("continuity.json"):
            return Result.failure(StorageError(f"Write failed for '{key}'"))
        return super().write(key, data)


@pytest.fixture
def storage():
    return FlakyStorage()


def generated_unit(number, words=120, facts=None, is_epilogue=False):
    return GeneratedUnit(
        unit=UnitDraft(
            number=number,
            title=f"Chapter {number}",
            body=build_prose(words, tag=f"g{number}w"),
            is_epilogue=is_epilogue,
        ),
        metadata=facts or UnitFacts(),
    )


@pytest.fixture
def at_max(settings):
    return settings.model_copy(update={"MAX_ACTIVE_WORKS": 1})


@pytest.fixture
def existing_work(storage, settings, make_work, seed, make_candidate):
    """A stored work with two accepted units, last touched five hours ago."""

    def _make(slug="moon-court", planned_units=10, status=None):
        tracker = ContinuityTracker(settings)
        work = make_work(slug=slug, planned_units=planned_units, now=FIXED_NOW - timedelta(hours=5))
        units = UnitRepository(storage)
        works = WorkRepository(storage, units)
        works.create(work)
        state = tracker.initialize(work, seed)
        for number in (1, 2):
            candidate = make_candidate(slug=slug, number=number)
            units.create(candidate.unit)
            state = tracker.commit(work, state, candidate)
        ContinuityRepository(storage).save(state)
        if status is not None:
            works.update_status(slug, status, at=work.updated_at)
        return work

    return _make


def build_orchestrator(settings, storage, generator):
    return Orchestrator(
        settings,
        storage=storage,
        generator=generator,
        scorer=FixedScorer(),
        concept_picker=ConceptPicker(rng=random.Random(1)),
        clock=lambda: FIXED_NOW,
    )


@pytest.mark.asyncio
async def test_empty_store_creates_a_new_work(settings, storage, seed):
    generator = FakeGenerator(
        new_work=GeneratedWork(
            work=WorkDraft(slug="tide-song", title="Tide Song", tags=["sea"], planned_units=12),
            seed=seed,
            first_unit=generated_unit(1),
        )
    )
    result = await build_orchestrator(settings, storage, generator).run()

    assert result.success, result.error
    assert result.action == "create_new"
    assert result.detail["units"] == ["tide-song:1"]
    assert result.detail["created_work"] is True
    work = WorkRepository(storage).get("tide-song").value
    assert work.planned_units == 12
    assert {"sea", generator.options.concept["main_trope"]} <= work.tags
    assert ContinuityRepository(storage).load("tide-song").value.last_unit == 1
    run_state = AutomationStateRepository(storage).load().value
    assert run_state.run_count == 1
    assert run_state.last_work_slug == "tide-song"
    assert run_state.used_concepts == [generator.options.concept]


@pytest.mark.asyncio
async def test_at_max_continues_the_oldest_work(at_max, storage, existing_work):
    existing_work()
    generator = FakeGenerator(next_unit=generated_unit(3))
    result = await build_orchestrator(at_max, storage, generator).run(RunOptions(context_compression="light"))

    assert result.success, result.error
    assert result.action == "continue"
    assert result.work_slug == "moon-court"
    assert result.detail["units"] == ["moon-court:3"]
    assert result.detail["status"] == "active"
    assert generator.context.next_unit == 3
    assert generator.context.compression_level.value == "light"
    work = WorkRepository(storage).get("moon-court").value
    assert work.updated_at == FIXED_NOW
    assert ContinuityRepository(storage).load("moon-court").value.last_unit == 3


@pytest.mark.asyncio
async def test_completion_ready_work_is_closed(settings, storage, existing_work):
    existing_work(status=WorkStatus.COMPLETION_READY)
    generator = FakeGenerator(
        completion=GeneratedCompletion(
            final_units=[generated_unit(3)],
            epilogue=generated_unit(4, is_epilogue=True),
        )
    )
    result = await build_orchestrator(settings, storage, generator).run()

    assert result.success, result.error
    assert result.action == "complete"
    assert result.detail["units"] == ["moon-court:3", "moon-court:4"]
    assert result.detail["status"] == "completed"
    assert generator.options.closing_units == settings.MAX_CLOSING_UNITS
    assert WorkRepository(storage).get("moon-court").value.status == WorkStatus.COMPLETED
    assert UnitRepository(storage).get("moon-court", 4).value.is_epilogue


@pytest.mark.asyncio
async def test_completion_without_epilogue_is_rejected(settings, storage, existing_work):
    existing_work(status=WorkStatus.COMPLETION_READY)
    generator = FakeGenerator(completion=GeneratedCompletion(final_units=[generated_unit(3)]))
    result = await build_orchestrator(settings, storage, generator).run()

    assert not result.success
    assert result.error.stage == "EXECUTE_ACTION"
    assert result.error.reasons[0]["code"] == "MISSING_EPILOGUE"
    assert UnitRepository(storage).latest_number("moon-court").value == 2


@pytest.mark.asyncio
async def test_validation_failure_persists_nothing(at_max, storage, existing_work):
    existing_work()
    generator = FakeGenerator(next_unit=generated_unit(3, words=10))
    result = await build_orchestrator(at_max, storage, generator).run()

    assert not result.success
    assert result.error.stage == "VALIDATE"
    assert [reason["check"] for reason in result.error.reasons] == ["length"]
    assert UnitRepository(storage).latest_number("moon-court").value == 2
    assert ContinuityRepository(storage).load("moon-court").value.last_unit == 2
    assert AutomationStateRepository(storage).load().value.run_count == 0
    assert WorkRepository(storage).get("moon-court").value.updated_at == FIXED_NOW - timedelta(hours=5)


@pytest.mark.asyncio
async def test_duplicate_new_work_is_rejected(settings, storage, existing_work, seed):
    original = existing_work()
    generator = FakeGenerator(
        new_work=GeneratedWork(work=WorkDraft(slug="moon-court", title="Another Moon"), seed=seed)
    )
    result = await build_orchestrator(settings, storage, generator).run()

    assert not result.success
    assert result.error.stage == "VALIDATE"
    assert result.error.reasons[0]["code"] == "duplicate"
    assert WorkRepository(storage).get("moon-court").value.title == original.title


@pytest.mark.asyncio
async def test_generator_timeout_fails_execute(at_max, storage, existing_work):
    existing_work()
    slow = at_max.model_copy(update={"GENERATOR_TIMEOUT_SECONDS": 0.05})
    generator = FakeGenerator(next_unit=generated_unit(3), delay=1.0)
    result = await build_orchestrator(slow, storage, generator).run()

    assert not result.success
    assert result.error.stage == "EXECUTE_ACTION"
    assert result.error.reasons[0]["code"] == "GENERATOR_TIMEOUT"
    assert UnitRepository(storage).latest_number("moon-court").value == 2


@pytest.mark.asyncio
async def test_generator_failure_fails_execute(settings, storage):
    result = await build_orchestrator(settings, storage, FakeGenerator()).run()
    assert not result.success
    assert result.error.stage == "EXECUTE_ACTION"
    assert "no new_work scripted" in result.error.message


@pytest.mark.asyncio
async def test_no_action_when_update_gap_not_reached(at_max, storage, existing_work):
    existing_work()
    gapped = at_max.model_copy(update={"MIN_UPDATE_GAP_HOURS": 24})
    generator = FakeGenerator()
    result = await build_orchestrator(gapped, storage, generator).run()

    assert result.success
    assert result.action == "no_action"
    assert generator.calls == []
    assert AutomationStateRepository(storage).load().value.run_count == 0


@pytest.mark.asyncio
async def test_dry_run_stops_after_decision(settings, storage):
    generator = FakeGenerator()
    result = await build_orchestrator(settings, storage, generator).run(RunOptions(dry_run=True))

    assert result.success
    assert result.action == "create_new"
    assert result.detail == {"dry_run": True}
    assert result.situation["active_count"] == 0
    assert generator.calls == []
    assert storage.list("works/").value == []


@pytest.mark.asyncio
async def test_missing_continuity_state_only_warns(settings, storage, make_work):
    WorkRepository(storage).create(make_work(slug="orphan-tale"))
    result = await build_orchestrator(settings, storage, FakeGenerator()).run(RunOptions(dry_run=True))

    assert result.success
    assert result.situation["warnings"] == ["'orphan-tale' has no continuity state"]
    assert result.situation["works"][0]["readiness"] is None


@pytest.mark.asyncio
async def test_ready_continuation_is_promoted(at_max, storage, existing_work):
    existing_work(planned_units=4)
    facts = UnitFacts(
        subplots_resolved=["sp-0-1"],
        state_updates=[
            StateUpdate(character="Aria", arc_progress=100),
            StateUpdate(character="Kael", arc_progress=100),
        ],
        arc_stage=ArcStage.RESOLUTION,
        relationship_stage=RelationshipStage.UNION,
    )
    generator = FakeGenerator(next_unit=generated_unit(3, facts=facts))
    result = await build_orchestrator(at_max, storage, generator).run()

    assert result.success, result.error
    assert result.detail["status"] == "completion-ready"
    assert WorkRepository(storage).get("moon-court").value.status == WorkStatus.COMPLETION_READY


@pytest.mark.asyncio
async def test_storage_failure_during_analysis(settings):
    class BrokenStorage:
        def list(self, prefix=""):
            return Result.failure(StorageError("disk gone"))

    result = await build_orchestrator(settings, BrokenStorage(), FakeGenerator()).run()
    assert not result.success
    assert result.error.stage == "ANALYZE_SITUATION"
    assert result.action is None


@pytest.mark.asyncio
async def test_completion_with_one_bad_closing_unit_persists_nothing(settings, storage, existing_work):
    existing_work(status=WorkStatus.COMPLETION_READY)
    generator = FakeGenerator(
        completion=GeneratedCompletion(
            final_units=[generated_unit(3, words=10)],
            epilogue=generated_unit(4, is_epilogue=True),
        )
    )
    result = await build_orchestrator(settings, storage, generator).run()

    assert not result.success
    assert result.error.stage == "VALIDATE"
    assert [reason["check"] for reason in result.error.reasons] == ["length"]
    assert UnitRepository(storage).latest_number("moon-court").value == 2
    assert ContinuityRepository(storage).load("moon-court").value.last_unit == 2
    assert WorkRepository(storage).get("moon-court").value.status == WorkStatus.COMPLETION_READY


@pytest.mark.asyncio
async def test_continuity_write_failure_rolls_back_continue(at_max, storage, existing_work):
    existing_work()
    storage.fail_continuity = True
    result = await build_orchestrator(at_max, storage, FakeGenerator(next_unit=generated_unit(3))).run()

    assert not result.success
    assert result.error.stage == "COMMIT"
    assert result.error.reasons[0]["type"] == "StorageError"
    assert UnitRepository(storage).latest_number("moon-court").value == 2
    assert ContinuityRepository(storage).load("moon-court").value.last_unit == 2
    assert WorkRepository(storage).get("moon-court").value.updated_at == FIXED_NOW - timedelta(hours=5)
    assert AutomationStateRepository(storage).load().value.run_count == 0


@pytest.mark.asyncio
async def test_continuity_write_failure_rolls_back_new_work(settings, storage, seed):
    storage.fail_continuity = True
    generator = FakeGenerator(
        new_work=GeneratedWork(
            work=WorkDraft(slug="tide-song", title="Tide Song", planned_units=12),
            seed=seed,
            first_unit=generated_unit(1),
        )
    )
    result = await build_orchestrator(settings, storage, generator).run()

    assert not result.success
    assert result.error.stage == "COMMIT"
    assert isinstance(WorkRepository(storage).get("tide-song").error, NotFoundError)
    assert storage.list("works/").value == []
    assert AutomationStateRepository(storage).load().value.used_concepts == []


@pytest.mark.asyncio
async def test_replaying_the_same_unit_is_rejected(at_max, storage, existing_work):
    existing_work()
    generator = FakeGenerator(next_unit=generated_unit(3))
    orchestrator = build_orchestrator(at_max, storage, generator)
    first = await orchestrator.run()
    assert first.success, first.error
    committed = ContinuityRepository(storage).load("moon-court").value.model_dump()

    second = await orchestrator.run()

    assert not second.success
    assert second.error.stage == "VALIDATE"
    assert "UNEXPECTED_NUMBER" in [reason["code"] for reason in second.error.reasons]
    assert UnitRepository(storage).latest_number("moon-court").value == 3
    assert ContinuityRepository(storage).load("moon-court").value.model_dump() == committed
    assert AutomationStateRepository(storage).load().value.run_count == 1
