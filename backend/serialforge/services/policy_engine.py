"""Decide the single action of a run from a situation snapshot."""
from __future__ import annotations

import logging
from datetime import timedelta

from serialforge.core.config import Settings
from serialforge.domains.automation.domain import Action, Situation

logger = logging.getLogger(__name__)


def decide(
    situation: Situation,
    min_update_gap_hours: float = 0,
    create_when_stuck: bool = False,
) -> Action:
    """Pick one action by fixed priority.

    1. complete the lowest-slug completion-ready work
    2. create a new work while below the active maximum
    3. continue the least recently updated work
    4. create anyway when stuck, otherwise do nothing
    """
    ready = situation.completion_ready
    if ready:
        return Action.complete(
            ready[0].slug,
            f"{len(ready)} work(s) ready for completion; closing '{ready[0].slug}' first",
        )

    if situation.below_max:
        return Action.create_new(
            f"{situation.active_count} active work(s), below the maximum of {situation.max_active}"
        )

    candidates = situation.continuable
    if candidates:
        oldest = candidates[0]
        gap = situation.captured_at - oldest.last_update
        if gap >= timedelta(hours=min_update_gap_hours):
            return Action.continue_work(
                oldest.slug,
                f"'{oldest.slug}' has the oldest update ({oldest.last_update.isoformat()})",
            )
        stalled = f"oldest update is only {gap} old, under the {min_update_gap_hours}h gap"
    else:
        stalled = "no work can be continued"

    if create_when_stuck:
        return Action.create_new(f"{stalled}; creating a new work")
    return Action.no_action(stalled)


class PolicyEngine:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def decide(self, situation: Situation) -> Action:
        action = decide(
            situation,
            min_update_gap_hours=self.settings.MIN_UPDATE_GAP_HOURS,
            create_when_stuck=self.settings.CREATE_WHEN_STUCK,
        )
        logger.info("Decided %s (%s)", action.kind.value, action.reason)
        return action
