from .repositories import ContinuityRepository, continuity_key

__all__ = ["ContinuityRepository", "continuity_key"]
