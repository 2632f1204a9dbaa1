"""Automation domain: situations, actions and run bookkeeping."""

from .entities import AutomationState, ErrorStage, RunStage
from .value_objects import (
    READINESS_WEIGHTS,
    Action,
    ActionKind,
    ReadinessScore,
    Situation,
    WorkStanding,
)

__all__ = [
    "AutomationState",
    "ErrorStage",
    "RunStage",
    "READINESS_WEIGHTS",
    "Action",
    "ActionKind",
    "ReadinessScore",
    "Situation",
    "WorkStanding",
]
