"""Automation domain entities."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunStage(str, Enum):
    IDLE = "idle"
    ANALYZING_SITUATION = "analyzing_situation"
    DECIDING_ACTION = "deciding_action"
    EXECUTING_ACTION = "executing_action"
    VALIDATING = "validating"
    COMMITTING = "committing"
    DONE = "done"
    ERROR = "error"


class ErrorStage(str, Enum):
    ANALYZE_SITUATION = "ANALYZE_SITUATION"
    DECIDE_ACTION = "DECIDE_ACTION"
    EXECUTE_ACTION = "EXECUTE_ACTION"
    VALIDATE = "VALIDATE"
    COMMIT = "COMMIT"


class AutomationState(BaseModel):
    """Persisted run bookkeeping, loaded and saved explicitly per run."""

    model_config = ConfigDict(extra="forbid")

    run_count: int = Field(0, ge=0)
    last_run_at: Optional[datetime] = None
    last_action: Optional[str] = None
    last_work_slug: Optional[str] = None
    used_concepts: List[Dict[str, str]] = Field(default_factory=list)
