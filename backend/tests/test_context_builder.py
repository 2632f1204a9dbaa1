from serialforge.domains.continuity.domain import EstablishedFact, TimelineEvent, UnitDigest
from serialforge.services.continuity import CompressionLevel, ContextBuilder, ContinuityTracker


def _state_with_history(settings, make_work, seed, digests=8):
    work = make_work()
    state = ContinuityTracker(settings).initialize(work, seed)
    for number in range(1, digests + 1):
        state.digests.append(
            UnitDigest(
                number=number,
                title=f"Unit {number}",
                summary=f"Summary {number}",
                ending_state=f"Ending {number}",
                cliffhanger=f"Hook {number}",
                key_events=[f"event {number}"],
                dialogue_excerpts=[f"line {number}"],
            )
        )
        state.checkpoint.events.append(TimelineEvent(unit_number=number, description=f"event {number}"))
    state.last_unit = digests
    return work, state


def test_full_context_has_all_tiers(settings, make_work, seed):
    work, state = _state_with_history(settings, make_work, seed)
    context = ContextBuilder(settings).build(work, state)
    assert context.next_unit == 9
    assert context.compression_level == CompressionLevel.NONE
    assert {m["name"] for m in context.essential["main_characters"]} == {"Aria", "Kael"}
    assert context.essential["world_rules"] == ["Firearms do not exist"]
    assert context.immediate["previous_ending"] == "Ending 8"
    assert context.immediate["cliffhanger"] == "Hook 8"
    assert context.immediate["active_conflicts"] == ["Who burned the east wing?"]
    assert [u["number"] for u in context.recent["units"]] == [4, 5, 6, 7, 8]
    assert context.optional["minor_characters"][0]["name"] == "Old Tom"
    assert [e["unit"] for e in context.optional["historical_events"]] == [1, 2, 3]
    assert context.token_estimate > 0


def test_requested_levels_drop_tiers(settings, make_work, seed):
    work, state = _state_with_history(settings, make_work, seed)
    builder = ContextBuilder(settings)
    light = builder.build(work, state, CompressionLevel.LIGHT)
    medium = builder.build(work, state, CompressionLevel.MEDIUM)
    heavy = builder.build(work, state, CompressionLevel.HEAVY)
    assert light.optional == {} and "dialogue" in light.recent
    assert medium.optional == {} and "dialogue" not in medium.recent and medium.recent["units"]
    assert heavy.recent == {} and heavy.optional == {}
    assert heavy.essential == light.essential
    assert heavy.immediate == light.immediate
    assert heavy.token_estimate < medium.token_estimate < light.token_estimate


def test_budget_drops_optional_then_recent(settings, make_work, seed):
    work, state = _state_with_history(settings, make_work, seed)
    full = ContextBuilder(settings).build(work, state)
    without_optional = ContextBuilder(settings).build(work, state, CompressionLevel.LIGHT)

    tight = settings.model_copy(update={"CONTEXT_TOKEN_BUDGET": without_optional.token_estimate})
    context = ContextBuilder(tight).build(work, state)
    assert context.optional == {}
    assert context.recent
    assert context.compression_level == CompressionLevel.LIGHT

    tiny = settings.model_copy(update={"CONTEXT_TOKEN_BUDGET": 1})
    context = ContextBuilder(tiny).build(work, state)
    assert context.optional == {} and context.recent == {}
    assert context.essential and context.immediate
    assert context.compression_level == CompressionLevel.HEAVY
    assert full.token_estimate > context.token_estimate


def test_render_lists_tiers(settings, make_work, seed):
    work, state = _state_with_history(settings, make_work, seed, digests=0)
    text = ContextBuilder(settings).build(work, state).render()
    assert "### ESSENTIAL" in text
    assert "### IMMEDIATE" in text
    assert "### RECENT" not in text


def test_zero_recent_units_leaves_all_history_optional(settings, make_work, seed):
    work, state = _state_with_history(settings, make_work, seed, digests=7)
    no_recent = settings.model_copy(update={"CONTEXT_RECENT_UNITS": 0})
    context = ContextBuilder(no_recent).build(work, state)
    assert context.recent == {}
    assert [e["unit"] for e in context.optional["historical_events"]] == list(range(1, 8))
    assert context.immediate["previous_ending"] == "Ending 7"


def test_amended_world_facts_surface_latest_value(settings, make_work, seed):
    work, state = _state_with_history(settings, make_work, seed, digests=3)
    state.world.facts.extend(
        [
            EstablishedFact(key="capital", value="Vessa", unit_number=1),
            EstablishedFact(key="season", value="winter", unit_number=2),
            EstablishedFact(key="capital", value="Orlane", unit_number=3, justification="the court moved"),
        ]
    )
    context = ContextBuilder(settings).build(work, state, CompressionLevel.HEAVY)
    assert context.essential["world_facts"] == {"capital": "Orlane", "season": "winter"}
