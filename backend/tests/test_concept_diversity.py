import random

import pytest

from serialforge.services.concept_diversity import (
    CONCEPT_KEYS,
    CONFLICTS,
    MAIN_TROPES,
    SUB_TROPES,
    ConceptPicker,
    combination_of,
)


def test_pick_is_reproducible_with_seeded_rng():
    first = ConceptPicker(rng=random.Random(7)).pick([])
    second = ConceptPicker(rng=random.Random(7)).pick([])
    assert first == second
    assert set(first) == set(CONCEPT_KEYS)
    assert first["main_trope"] in MAIN_TROPES
    assert first["sub_trope"] in SUB_TROPES
    assert first["conflict"] in CONFLICTS


def test_pick_avoids_used_combinations():
    picker = ConceptPicker(
        rng=random.Random(3),
        main_tropes=["a", "b"],
        sub_tropes=["x"],
        conflicts=["c"],
    )
    used = [{"main_trope": "a", "sub_trope": "x", "conflict": "c"}]
    assert picker.pick(used) == {"main_trope": "b", "sub_trope": "x", "conflict": "c"}


def test_exhausted_space_falls_back_to_variant():
    picker = ConceptPicker(max_attempts=5, main_tropes=["a"], sub_tropes=["x"], conflicts=["c"])
    used = [
        {"main_trope": "a", "sub_trope": "x", "conflict": "c"},
        {"main_trope": "a", "sub_trope": "x", "conflict": "c", "variant": "variant-2"},
    ]
    assert picker.pick(used) == {"main_trope": "a", "sub_trope": "x", "conflict": "c", "variant": "variant-3"}


def test_incomplete_concepts_are_ignored():
    assert combination_of({"main_trope": "a", "sub_trope": ""}) is None
    picker = ConceptPicker(main_tropes=["a"], sub_tropes=["x"], conflicts=["c"])
    assert "variant" not in picker.pick([{"main_trope": "a"}])


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        ConceptPicker(max_attempts=0)
