import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from serialforge.core.config import load_settings  # noqa: E402
from serialforge.domains.content.domain import Unit, Work  # noqa: E402
from serialforge.domains.continuity.domain import (  # noqa: E402
    CandidateUnit,
    CharacterIntroduction,
    CharacterRole,
    CharacterState,
    ContinuitySeed,
    UnitFacts,
    WorldModel,
    WorldRule,
)
from serialforge.infrastructure.storage import InMemoryStorage  # noqa: E402

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def build_prose(words: int, tag: str = "w") -> str:
    """Distinct ten-word sentences, so no sentence ever repeats."""
    tokens = [f"{tag}{i}" for i in range(words)]
    for index in range(9, len(tokens), 10):
        tokens[index] += "."
    return " ".join(tokens)


@pytest.fixture
def settings():
    return load_settings(
        _env_file=None,
        STORAGE_BACKEND="memory",
        UNIT_MIN_WORDS=50,
        UNIT_MAX_WORDS=400,
        GENERATOR_TIMEOUT_SECONDS=1,
        GENERATOR_RETRY_BACKOFF=0.0,
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def prose():
    return build_prose


@pytest.fixture
def make_work():
    def _make(slug="moon-court", planned_units=10, **kwargs):
        return Work.create(
            slug=slug,
            title=kwargs.pop("title", slug.replace("-", " ").title()),
            planned_units=planned_units,
            now=kwargs.pop("now", FIXED_NOW),
            **kwargs,
        )

    return _make


@pytest.fixture
def seed():
    return ContinuitySeed(
        characters=[
            CharacterIntroduction(
                name="Aria",
                aliases=["The Archivist"],
                role=CharacterRole.MAIN,
                abilities=["memory weaving"],
                personality=["stubborn"],
                relationships={"Kael": "rival"},
                state=CharacterState(location="Silver Library"),
            ),
            CharacterIntroduction(
                name="Kael",
                role=CharacterRole.MAIN,
                abilities=["swordsmanship"],
                personality=["loyal"],
                state=CharacterState(location="Silver Library"),
            ),
            CharacterIntroduction(name="Old Tom", role=CharacterRole.MINOR),
        ],
        world=WorldModel(
            rules=[WorldRule(id="no-guns", statement="Firearms do not exist", prohibited_terms=["pistol"])],
            magic_system="Memories can be woven into objects",
            geography=["Silver Library", "Harbor"],
            amendable_keys=["capital"],
        ),
        subplots=["Who burned the east wing?"],
    )


@pytest.fixture
def make_candidate(prose):
    def _make(slug="moon-court", number=1, words=120, facts=None, body=None, **unit_kwargs):
        unit = Unit.create(
            work_slug=slug,
            number=number,
            title=unit_kwargs.pop("title", f"Unit {number}"),
            body=body if body is not None else prose(words, tag=f"u{number}w"),
            publication_date=FIXED_NOW.date(),
            **unit_kwargs,
        )
        return CandidateUnit(unit=unit, facts=facts or UnitFacts())

    return _make
