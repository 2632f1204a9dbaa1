import pytest
from pydantic import ValidationError

from serialforge.core.config import load_settings


def test_defaults_match_documented_values():
    settings = load_settings(_env_file=None)
    assert settings.MAX_ACTIVE_WORKS == 3
    assert settings.UNIT_MIN_WORDS == 800
    assert settings.UNIT_MAX_WORDS == 2000
    assert settings.DUPLICATE_SENTENCE_THRESHOLD == 0.3
    assert settings.QUALITY_MIN_SCORE == 7.0
    assert settings.COMPLETION_READINESS_THRESHOLD == 85
    assert settings.CREATE_WHEN_STUCK is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MAX_ACTIVE_WORKS", "5")
    monkeypatch.setenv("CONCEPT_TAGS", "romance, fantasy ,")
    settings = load_settings(_env_file=None)
    assert settings.MAX_ACTIVE_WORKS == 5
    assert settings.CONCEPT_TAGS == ["romance", "fantasy"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"STORAGE_BACKEND": "s3"},
        {"DUPLICATE_SENTENCE_THRESHOLD": 1.5},
        {"QUALITY_MIN_SCORE": 11},
        {"UNIT_MIN_WORDS": 900, "UNIT_MAX_WORDS": 800},
        {"STORAGE_BACKEND": "redis", "REDIS_URL": ""},
        {"CONTEXT_RECENT_UNITS": -1},
        {"CONTEXT_TOKEN_BUDGET": 0},
        {"MAX_ACTIVE_WORKS": 0},
    ],
)
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValidationError):
        load_settings(_env_file=None, **overrides)
