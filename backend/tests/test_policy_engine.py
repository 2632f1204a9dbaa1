import logging
from datetime import datetime, timedelta, timezone

from hypothesis import given, strategies as st
from hypothesis.strategies import composite

from serialforge.core.config import load_settings
from serialforge.domains.automation.domain import ActionKind, Situation, WorkStanding
from serialforge.domains.content.domain import WorkProgress, WorkStatus
from serialforge.services.policy_engine import PolicyEngine, decide

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def standing(slug, hours_ago=1, ready=False):
    progress = WorkProgress(
        slug=slug,
        title=slug,
        status=WorkStatus.COMPLETION_READY if ready else WorkStatus.ACTIVE,
        units_completed=3,
        latest_unit=3,
        planned_units=10,
        last_update=NOW - timedelta(hours=hours_ago),
    )
    return WorkStanding(progress=progress, completion_ready=ready)


def situation(*works, max_active=3):
    return Situation(works=tuple(works), max_active=max_active, captured_at=NOW)


def test_completion_ready_beats_everything():
    snapshot = situation(standing("zeta", ready=True), standing("alpha", ready=True), max_active=5)
    action = decide(snapshot)
    assert action.kind == ActionKind.COMPLETE
    assert action.work_slug == "alpha"


def test_create_when_below_max():
    action = decide(situation(standing("alpha"), standing("beta")))
    assert action.kind == ActionKind.CREATE_NEW
    assert action.work_slug is None
    assert "below the maximum of 3" in action.reason


def test_empty_situation_creates():
    assert decide(situation()).kind == ActionKind.CREATE_NEW


def test_continue_oldest_at_max():
    snapshot = situation(standing("alpha", 2), standing("beta", 9), standing("gamma", 5))
    action = decide(snapshot)
    assert action.kind == ActionKind.CONTINUE
    assert action.work_slug == "beta"


def test_ties_on_update_break_by_slug():
    snapshot = situation(standing("gamma", 4), standing("beta", 4), standing("delta", 4))
    assert decide(snapshot).work_slug == "beta"


def test_gap_not_reached_means_no_action():
    snapshot = situation(standing("alpha", 2), standing("beta", 1), standing("gamma", 3))
    action = decide(snapshot, min_update_gap_hours=6)
    assert action.kind == ActionKind.NO_ACTION
    assert "6h gap" in action.reason


def test_stuck_creates_when_configured():
    snapshot = situation(standing("alpha", 2), standing("beta", 1), standing("gamma", 3))
    action = decide(snapshot, min_update_gap_hours=6, create_when_stuck=True)
    assert action.kind == ActionKind.CREATE_NEW


def test_engine_uses_settings_and_logs(caplog):
    engine = PolicyEngine(load_settings(_env_file=None, MAX_ACTIVE_WORKS=1, MIN_UPDATE_GAP_HOURS=24))
    snapshot = situation(standing("alpha", 2), max_active=1)
    with caplog.at_level(logging.INFO, logger="serialforge.services.policy_engine"):
        action = engine.decide(snapshot)
    assert action.kind == ActionKind.NO_ACTION
    assert "Decided no_action" in caplog.text


@composite
def situations(draw):
    slugs = draw(st.lists(st.from_regex(r"[a-z]{1,6}", fullmatch=True), unique=True, max_size=6))
    works = [
        standing(
            slug,
            hours_ago=draw(st.integers(min_value=0, max_value=72)),
            ready=draw(st.booleans()),
        )
        for slug in slugs
    ]
    return situation(*works, max_active=draw(st.integers(min_value=1, max_value=6)))


@given(situations(), st.floats(min_value=0, max_value=96), st.booleans())
def test_decision_is_deterministic(snapshot, gap, stuck):
    assert decide(snapshot, gap, stuck) == decide(snapshot, gap, stuck)


@given(situations(), st.floats(min_value=0, max_value=96), st.booleans())
def test_targeted_actions_name_an_in_progress_work(snapshot, gap, stuck):
    action = decide(snapshot, gap, stuck)
    slugs = {w.slug for w in snapshot.works}
    if action.kind in (ActionKind.COMPLETE, ActionKind.CONTINUE):
        assert action.work_slug in slugs
    else:
        assert action.work_slug is None


@given(situations())
def test_ready_works_always_complete_first(snapshot):
    ready = [w.slug for w in snapshot.works if w.completion_ready]
    action = decide(snapshot)
    if ready:
        assert action.kind == ActionKind.COMPLETE
        assert action.work_slug == min(ready)
    else:
        assert action.kind != ActionKind.COMPLETE
