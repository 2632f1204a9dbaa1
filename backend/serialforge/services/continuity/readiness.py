"""Completion readiness scoring."""
from __future__ import annotations

from statistics import mean
from typing import Optional

from serialforge.domains.automation.domain import ReadinessScore
from serialforge.domains.continuity.domain import CharacterRole, ContinuityState


def _resolved_percentage(resolved: int, total: int) -> float:
    if total == 0:
        return 100.0
    return resolved / total * 100


def compute_readiness(state: ContinuityState) -> ReadinessScore:
    """Score how close a work is to a satisfying ending, per dimension (0-100)."""
    plot = state.plot

    plot_threads = list(plot.subplots) + [f for f in plot.foreshadowing if f.category == "plot"]
    threads_done = sum(1 for item in plot_threads if item.resolved_in is not None)
    plot_score = 0.5 * plot.arc_stage.progress + 0.5 * _resolved_percentage(threads_done, len(plot_threads))

    main = state.characters_by_role(CharacterRole.MAIN)
    character_score = mean(p.arc_progress for p in main) if main else 0.0

    if plot.promises:
        fulfilled = sum(1 for p in plot.promises if p.fulfilled)
        relationship_score = mean(
            [plot.relationship_stage.progress, _resolved_percentage(fulfilled, len(plot.promises))]
        )
    else:
        relationship_score = plot.relationship_stage.progress

    world_items = [f for f in plot.foreshadowing if f.category == "world"]
    world_score = _resolved_percentage(sum(1 for f in world_items if f.resolved), len(world_items))

    return ReadinessScore(
        plot=float(plot_score),
        character=float(character_score),
        relationship=float(relationship_score),
        world=float(world_score),
    )


def passes_prefilter(units_completed: int, planned_total: int, ratio: float) -> bool:
    if planned_total <= 0:
        return False
    return units_completed / planned_total >= ratio


def assess_readiness(
    state: ContinuityState, units_completed: int, planned_total: int, prefilter_ratio: float
) -> Optional[ReadinessScore]:
    """Composite readiness, or None when the work is too early to bother scoring."""
    if not passes_prefilter(units_completed, planned_total, prefilter_ratio):
        return None
    return compute_readiness(state)
