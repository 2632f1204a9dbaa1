"""
Configuration settings for SerialForge
"""
from typing import List, Optional, Union
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator


class Settings(BaseSettings):
    """Automation settings, injected explicitly into every component."""

    # Project Info
    PROJECT_NAME: str = "SerialForge"
    VERSION: str = "1.0.0"
    APP_ENV: str = Field(default="development")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    STRUCTURED_LOGGING_ENABLED: bool = Field(default=False)

    # Storage
    STORAGE_BACKEND: str = Field(default="filesystem")
    STORAGE_ROOT: str = Field(default="./content")
    REDIS_URL: Optional[str] = Field(default=None)
    REDIS_KEY_PREFIX: str = Field(default="serialforge")

    # Generator service
    GENERATOR_URL: str = Field(default="http://localhost:8100/v1")
    GENERATOR_API_KEY: Optional[str] = Field(default=None)
    GENERATOR_TIMEOUT_SECONDS: float = Field(default=300.0)
    GENERATOR_RETRIES: int = Field(default=2)
    GENERATOR_RETRY_BACKOFF: float = Field(default=0.5)

    # Policy
    MAX_ACTIVE_WORKS: int = Field(default=3, ge=1)
    CREATE_WHEN_STUCK: bool = Field(default=False)
    MIN_UPDATE_GAP_HOURS: float = Field(default=0.0)
    COMPLETION_READINESS_THRESHOLD: float = Field(default=85.0)
    READINESS_PREFILTER_RATIO: float = Field(default=0.5)
    DEFAULT_PLANNED_UNITS: int = Field(default=75)
    MAX_CLOSING_UNITS: int = Field(default=6)

    # Validation gate
    UNIT_MIN_WORDS: int = Field(default=800)
    UNIT_MAX_WORDS: int = Field(default=2000)
    DUPLICATE_SENTENCE_THRESHOLD: float = Field(default=0.3)
    QUALITY_MIN_SCORE: float = Field(default=7.0)

    # Continuity context
    CONTEXT_TOKEN_BUDGET: int = Field(default=8000, ge=1)
    CONTEXT_RECENT_UNITS: int = Field(default=5, ge=0)
    CONTEXT_CHARS_PER_TOKEN: float = Field(default=4.0, gt=0)

    # Concept diversity
    CONCEPT_MAX_ATTEMPTS: int = Field(default=50)
    CONCEPT_TAGS: Union[str, List[str]] = Field(default="")

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in {"memory", "filesystem", "redis"}:
            raise ValueError("STORAGE_BACKEND must be one of: memory, filesystem, redis")
        return value

    @field_validator("CONCEPT_TAGS", mode="before")
    @classmethod
    def parse_concept_tags(cls, v):
        """Parse extra concept tags from string or list"""
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        elif isinstance(v, list):
            return v
        return []

    @field_validator("DUPLICATE_SENTENCE_THRESHOLD", "READINESS_PREFILTER_RATIO")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("ratio settings must be between 0 and 1")
        return v

    @field_validator("QUALITY_MIN_SCORE")
    @classmethod
    def validate_quality(cls, v: float) -> float:
        if not 0.0 <= v <= 10.0:
            raise ValueError("QUALITY_MIN_SCORE must be between 0 and 10")
        return v

    @model_validator(mode="after")
    def validate_word_range(self) -> "Settings":
        if self.UNIT_MIN_WORDS < 1 or self.UNIT_MAX_WORDS < self.UNIT_MIN_WORDS:
            raise ValueError("UNIT_MIN_WORDS must be >= 1 and <= UNIT_MAX_WORDS")
        if self.STORAGE_BACKEND == "redis" and not self.REDIS_URL:
            raise ValueError("REDIS_URL must be set when STORAGE_BACKEND is redis")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


def load_settings(**overrides) -> Settings:
    """Build a settings value; callers pass it down explicitly."""
    return Settings(**overrides)
