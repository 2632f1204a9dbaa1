"""Continuity tracking: history checks, commits, context and readiness."""

from .context_builder import CompressionLevel, ContextBuilder, GenerationContext, estimate_tokens
from .line_classifier import (
    Action,
    Dialogue,
    Line,
    Monologue,
    Narrative,
    classify_body,
    classify_line,
    dialogue_lines,
)
from .readiness import assess_readiness, compute_readiness, passes_prefilter
from .tracker import ContinuityTracker

__all__ = [
    "CompressionLevel",
    "ContextBuilder",
    "GenerationContext",
    "estimate_tokens",
    "Action",
    "Dialogue",
    "Line",
    "Monologue",
    "Narrative",
    "classify_body",
    "classify_line",
    "dialogue_lines",
    "assess_readiness",
    "compute_readiness",
    "passes_prefilter",
    "ContinuityTracker",
]
