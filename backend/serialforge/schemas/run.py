"""Run options and results exposed by the orchestrator."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RunOptions(BaseModel):
    dry_run: bool = False
    context_compression: str = Field("none", pattern="^(none|light|medium|heavy)$")


class RunError(BaseModel):
    stage: str
    message: str
    reasons: List[Dict[str, Any]] = Field(default_factory=list)


class RunResult(BaseModel):
    success: bool
    action: Optional[str] = None
    work_slug: Optional[str] = None
    reason: str = ""
    detail: Dict[str, Any] = Field(default_factory=dict)
    situation: Optional[Dict[str, Any]] = None
    error: Optional[RunError] = None
    duration_ms: Optional[float] = None
