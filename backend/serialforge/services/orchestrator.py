"""Run the lifecycle once: analyze, decide, execute, validate, commit."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from serialforge.core.config import Settings
from serialforge.domains.automation.domain import (
    Action,
    ActionKind,
    AutomationState,
    ErrorStage,
    RunStage,
    Situation,
    WorkStanding,
)
from serialforge.domains.automation.infrastructure import AutomationStateRepository
from serialforge.domains.content.domain import Unit, Work, WorkStatus
from serialforge.domains.content.infrastructure import UnitRepository, WorkRepository, work_key
from serialforge.domains.continuity.domain import CandidateUnit, ContinuityState
from serialforge.domains.continuity.infrastructure import ContinuityRepository
from serialforge.infrastructure.resilience import with_timeout
from serialforge.infrastructure.storage import Storage, build_storage
from serialforge.schemas import (
    GeneratedUnit,
    GenerationOptions,
    RunError,
    RunOptions,
    RunResult,
)
from serialforge.services.concept_diversity import ConceptPicker
from serialforge.services.continuity import (
    CompressionLevel,
    ContinuityTracker,
    assess_readiness,
)
from serialforge.services.generator import Generator, build_generator
from serialforge.services.policy_engine import PolicyEngine
from serialforge.services.validation import QualityScorer, ValidationGate
from serialforge.shared_kernel import (
    DomainError,
    GenerationError,
    NotFoundError,
    Result,
    StorageError,
    ValidationError,
    ValidationResult,
)

logger = logging.getLogger(__name__)


class StageFailed(Exception):
    """Unwinds a run to the error stage it failed in."""

    def __init__(self, stage: ErrorStage, error: DomainError, reasons: Optional[List[Dict[str, Any]]] = None):
        super().__init__(error.message)
        self.stage = stage
        self.error = error
        self.reasons = reasons or []


@dataclass
class RunPlan:
    """Everything an action produced, before anything is persisted."""

    action: Action
    work: Work
    base_state: ContinuityState
    candidates: List[CandidateUnit] = field(default_factory=list)
    is_new: bool = False
    concept: Dict[str, str] = field(default_factory=dict)
    final_state: Optional[ContinuityState] = None
    validation: Optional[ValidationResult] = None


def _unwrap(result: Result, stage: ErrorStage) -> Any:
    if result.is_failure:
        error = result.error
        if not isinstance(error, DomainError):
            error = StorageError(str(error))
        raise StageFailed(stage, error)
    return result.value


class Orchestrator:
    def __init__(
        self,
        settings: Settings,
        storage: Optional[Storage] = None,
        generator: Optional[Generator] = None,
        scorer: Optional[QualityScorer] = None,
        concept_picker: Optional[ConceptPicker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings
        self.storage = storage or build_storage(settings)
        self.units = UnitRepository(self.storage)
        self.works = WorkRepository(self.storage, self.units)
        self.continuity = ContinuityRepository(self.storage)
        self.automation = AutomationStateRepository(self.storage)
        self.generator = build_generator(settings, generator)
        self.tracker = ContinuityTracker(settings)
        self.gate = ValidationGate(settings, self.tracker, scorer)
        self.policy = PolicyEngine(settings)
        self.concept_picker = concept_picker or ConceptPicker(settings.CONCEPT_MAX_ATTEMPTS)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.stage = RunStage.IDLE

    def _transition(self, stage: RunStage) -> None:
        logger.info("Run stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    async def run(self, options: Optional[RunOptions] = None) -> RunResult:
        options = options or RunOptions()
        start = time.perf_counter()
        self.stage = RunStage.IDLE
        situation: Optional[Situation] = None
        action: Optional[Action] = None
        try:
            self._transition(RunStage.ANALYZING_SITUATION)
            situation, run_state = await self._analyze()

            self._transition(RunStage.DECIDING_ACTION)
            action = self._decide(situation)

            if action.kind == ActionKind.NO_ACTION or options.dry_run:
                self._transition(RunStage.DONE)
                return self._result(True, action, situation, start, detail={"dry_run": options.dry_run})

            self._transition(RunStage.EXECUTING_ACTION)
            plan = await self._execute(action, run_state, options)

            self._transition(RunStage.VALIDATING)
            self._validate(plan)

            self._transition(RunStage.COMMITTING)
            detail = await asyncio.to_thread(self._commit, plan, run_state)

            self._transition(RunStage.DONE)
            return self._result(True, action, situation, start, detail=detail)
        except StageFailed as failure:
            self._transition(RunStage.ERROR)
            logger.error("Run failed at %s: %s", failure.stage.value, failure.error.message)
            result = self._result(False, action, situation, start)
            result.error = RunError(
                stage=failure.stage.value,
                message=failure.error.message,
                reasons=failure.reasons or [failure.error.to_dict()],
            )
            return result

    def _result(
        self,
        success: bool,
        action: Optional[Action],
        situation: Optional[Situation],
        start: float,
        detail: Optional[Dict[str, Any]] = None,
    ) -> RunResult:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("Run finished in %.1fms (success=%s)", duration_ms, success)
        return RunResult(
            success=success,
            action=action.kind.value if action else None,
            work_slug=action.work_slug if action else None,
            reason=action.reason if action else "",
            detail=detail or {},
            situation=situation.snapshot() if situation else None,
            duration_ms=round(duration_ms, 2),
        )

    # ------------------------------------------------------------------
    # Analyze
    # ------------------------------------------------------------------

    async def _analyze(self) -> tuple[Situation, AutomationState]:
        stage = ErrorStage.ANALYZE_SITUATION
        summaries = _unwrap(await asyncio.to_thread(self.works.list_active), stage)
        run_state = _unwrap(await asyncio.to_thread(self.automation.load), stage)
        standings = await asyncio.gather(
            *(asyncio.to_thread(self._standing, summary.slug) for summary in summaries)
        )
        works = []
        warnings = []
        for standing in standings:
            value, warning = _unwrap(standing, stage)
            works.append(value)
            if warning:
                warnings.append(warning)
        situation = Situation(
            works=tuple(works),
            max_active=self.settings.MAX_ACTIVE_WORKS,
            captured_at=self.clock(),
            warnings=tuple(warnings),
        )
        logger.info(
            "Situation: %s active, %s completion-ready", situation.active_count, len(situation.completion_ready)
        )
        return situation, run_state

    def _standing(self, slug: str) -> Result[tuple, Exception]:
        progress = self.works.get_progress(slug)
        if progress.is_failure:
            return progress
        p = progress.value
        readiness = None
        warning = None
        state = self.continuity.load(slug)
        if state.is_success:
            readiness = assess_readiness(
                state.value,
                p.units_completed,
                p.planned_units,
                self.settings.READINESS_PREFILTER_RATIO,
            )
        elif isinstance(state.error, NotFoundError):
            warning = f"'{slug}' has no continuity state"
            logger.warning("Work %s has no continuity state; readiness skipped", slug)
        else:
            return state
        ready = p.status == WorkStatus.COMPLETION_READY or (
            readiness is not None
            and readiness.composite >= self.settings.COMPLETION_READINESS_THRESHOLD
        )
        return Result.success((WorkStanding(progress=p, completion_ready=ready, readiness=readiness), warning))

    # ------------------------------------------------------------------
    # Decide
    # ------------------------------------------------------------------

    def _decide(self, situation: Situation) -> Action:
        try:
            return self.policy.decide(situation)
        except Exception as exc:
            logger.exception("Policy engine failed")
            raise StageFailed(ErrorStage.DECIDE_ACTION, ValidationError(f"Policy engine failed: {exc}")) from exc

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------

    async def _generate(self, call) -> Any:
        stage = ErrorStage.EXECUTE_ACTION
        timeout = self.settings.GENERATOR_TIMEOUT_SECONDS
        try:
            result = await with_timeout(call, timeout)
        except asyncio.TimeoutError as exc:
            raise StageFailed(
                stage, GenerationError(f"Generator timed out after {timeout}s", code="GENERATOR_TIMEOUT")
            ) from exc
        except DomainError as exc:
            raise StageFailed(stage, exc) from exc
        except Exception as exc:
            logger.exception("Generator raised")
            raise StageFailed(stage, GenerationError(f"Generator failed: {exc}")) from exc
        return _unwrap(result, stage)

    def _candidate(self, work: Work, generated: GeneratedUnit) -> CandidateUnit:
        draft = generated.unit
        unit = Unit.create(
            work_slug=work.slug,
            number=draft.number,
            title=draft.title,
            body=draft.body,
            publication_date=self.clock().date(),
            is_epilogue=draft.is_epilogue,
        )
        return CandidateUnit(unit=unit, facts=generated.metadata)

    async def _execute(self, action: Action, run_state: AutomationState, options: RunOptions) -> RunPlan:
        compression = CompressionLevel(options.context_compression)
        if action.kind == ActionKind.CREATE_NEW:
            return await self._execute_create(action, run_state)
        return await self._execute_existing(action, compression)

    async def _execute_create(self, action: Action, run_state: AutomationState) -> RunPlan:
        stage = ErrorStage.EXECUTE_ACTION
        existing = _unwrap(await asyncio.to_thread(self.works.list_all), stage)
        used = [work.concept for work in existing] + list(run_state.used_concepts)
        concept = self.concept_picker.pick(used)
        options = GenerationOptions(concept=concept, target_words=self.settings.UNIT_MIN_WORDS)

        generated = await self._generate(self.generator.generate_new_work(options))
        draft = generated.work
        final_concept = generated.concept or concept
        tags = set(draft.tags) | set(self.settings.CONCEPT_TAGS)
        tags.update(v for k, v in final_concept.items() if k != "variant")
        work = Work.create(
            slug=draft.slug,
            title=draft.title,
            planned_units=draft.planned_units or self.settings.DEFAULT_PLANNED_UNITS,
            summary=draft.summary,
            tags=tags,
            concept=final_concept,
            now=self.clock(),
        )
        work.min_words = draft.min_words
        work.max_words = draft.max_words
        state = self.tracker.initialize(work, generated.seed)
        candidates = [self._candidate(work, generated.first_unit)] if generated.first_unit else []
        return RunPlan(
            action=action,
            work=work,
            base_state=state,
            candidates=candidates,
            is_new=True,
            concept=final_concept,
        )

    async def _execute_existing(self, action: Action, compression: CompressionLevel) -> RunPlan:
        stage = ErrorStage.EXECUTE_ACTION
        slug = action.work_slug or ""
        work = _unwrap(await asyncio.to_thread(self.works.get, slug), stage)
        state = _unwrap(await asyncio.to_thread(self.continuity.load, slug), stage)
        context = self.tracker.build_context(work, state, compression)
        options = GenerationOptions(target_words=work.word_range(
            self.settings.UNIT_MIN_WORDS, self.settings.UNIT_MAX_WORDS
        )[0])

        if action.kind == ActionKind.CONTINUE:
            generated = await self._generate(self.generator.generate_next_unit(slug, context, options))
            candidates = [self._candidate(work, generated)]
        else:
            options.closing_units = self.settings.MAX_CLOSING_UNITS
            completion = await self._generate(self.generator.complete_work(slug, context, options))
            ordered = completion.ordered()
            if not ordered:
                raise StageFailed(stage, GenerationError("Completion produced no units", code="EMPTY_COMPLETION"))
            if len(ordered) > self.settings.MAX_CLOSING_UNITS:
                raise StageFailed(
                    stage,
                    GenerationError(
                        f"Completion produced {len(ordered)} units, more than {self.settings.MAX_CLOSING_UNITS}",
                        code="TOO_MANY_CLOSING_UNITS",
                    ),
                )
            if not ordered[-1].unit.is_epilogue:
                raise StageFailed(
                    stage, GenerationError("Last closing unit must be an epilogue", code="MISSING_EPILOGUE")
                )
            candidates = [self._candidate(work, item) for item in ordered]
        return RunPlan(action=action, work=work, base_state=state, candidates=candidates)

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def _validate(self, plan: RunPlan) -> None:
        stage = ErrorStage.VALIDATE
        combined = ValidationResult()
        if plan.is_new:
            exists = _unwrap(self.storage.exists(work_key(plan.work.slug)), stage)
            if exists:
                combined.add(
                    "structural",
                    ValidationError(f"Work '{plan.work.slug}' already exists", code="duplicate"),
                )
        latest = _unwrap(self.units.latest_number(plan.work.slug), stage)

        simulated = plan.base_state
        for offset, candidate in enumerate(plan.candidates, start=1):
            checked = self.gate.evaluate(candidate, simulated, plan.work, expected_number=latest + offset)
            combined.reasons.extend(checked.reasons)
            combined.metrics[str(candidate.unit.number)] = checked.metrics
            # later closing units are checked against the state the earlier ones leave behind
            simulated = self.tracker.commit(plan.work, simulated, candidate)

        plan.final_state = simulated
        plan.validation = combined
        if not combined.passed:
            raise StageFailed(
                stage,
                ValidationError(
                    f"{len(combined.reasons)} validation failure(s) for '{plan.work.slug}'",
                    details={"failures": len(combined.reasons)},
                ),
                reasons=combined.to_list(),
            )

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _commit(self, plan: RunPlan, run_state: AutomationState) -> Dict[str, Any]:
        stage = ErrorStage.COMMIT
        work = plan.work
        now = self.clock()
        units = [candidate.unit for candidate in plan.candidates]

        if plan.is_new:
            _unwrap(self.works.create(work), stage)

        stored = self.units.create_batch(units)
        if stored.is_failure:
            if plan.is_new:
                self._rollback_work(work.slug)
            _unwrap(stored, stage)

        saved = self.continuity.save(plan.final_state or plan.base_state)
        if saved.is_failure:
            for unit in reversed(units):
                self.units.delete(unit.id)
            if plan.is_new:
                self._rollback_work(work.slug)
            _unwrap(saved, stage)

        status = self._settle_status(plan, now)

        run_state.run_count += 1
        run_state.last_run_at = now
        run_state.last_action = plan.action.kind.value
        run_state.last_work_slug = work.slug
        if plan.is_new and plan.concept:
            run_state.used_concepts.append(dict(plan.concept))
        persisted = self.automation.save(run_state)
        if persisted.is_failure:
            raise StageFailed(
                stage,
                StorageError(
                    f"Units of '{work.slug}' were stored but run state was not; reconcile before the next run",
                    details={"cause": str(persisted.error)},
                ),
            )

        return {
            "work_slug": work.slug,
            "created_work": plan.is_new,
            "units": [unit.id for unit in units],
            "status": status.value,
            "validation": plan.validation.metrics if plan.validation else {},
        }

    def _settle_status(self, plan: RunPlan, now: datetime) -> WorkStatus:
        stage = ErrorStage.COMMIT
        work = plan.work
        reconcile = "units were stored; reconcile the work status"

        def apply(result: Result) -> None:
            if result.is_failure:
                raise StageFailed(
                    stage,
                    StorageError(f"Status update for '{work.slug}' failed ({reconcile}): {result.error}"),
                )

        if plan.action.kind == ActionKind.COMPLETE:
            apply(self.works.update_status(work.slug, WorkStatus.COMPLETED, at=now))
            return WorkStatus.COMPLETED
        if plan.is_new:
            return work.status

        apply(self.works.touch(work.slug, at=now))
        progress = self.works.get_progress(work.slug)
        apply(progress)
        p = progress.value
        readiness = assess_readiness(
            plan.final_state or plan.base_state,
            p.units_completed,
            p.planned_units,
            self.settings.READINESS_PREFILTER_RATIO,
        )
        if (
            p.status == WorkStatus.ACTIVE
            and readiness is not None
            and readiness.composite >= self.settings.COMPLETION_READINESS_THRESHOLD
        ):
            apply(self.works.update_status(work.slug, WorkStatus.COMPLETION_READY, at=now))
            return WorkStatus.COMPLETION_READY
        return p.status

    def _rollback_work(self, slug: str) -> None:
        removed = self.works.delete(slug)
        if removed.is_failure:
            logger.error("Rollback of work %s failed: %s", slug, removed.error)
