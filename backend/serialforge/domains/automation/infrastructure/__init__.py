from .repositories import AutomationStateRepository, STATE_KEY

__all__ = ["AutomationStateRepository", "STATE_KEY"]
