"""Persistence for automation bookkeeping."""
from __future__ import annotations

from serialforge.domains.automation.domain import AutomationState
from serialforge.infrastructure.storage import Storage
from serialforge.schemas import dump_record, parse_record
from serialforge.shared_kernel import NotFoundError, Result

STATE_KEY = "automation/state.json"


class AutomationStateRepository:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def load(self) -> Result[AutomationState, Exception]:
        """A missing record is a fresh state, not an error."""
        raw = self.storage.read(STATE_KEY)
        if raw.is_failure:
            if isinstance(raw.error, NotFoundError):
                return Result.success(AutomationState())
            return raw
        return parse_record(AutomationState, raw.value, STATE_KEY)

    def save(self, state: AutomationState) -> Result[None, Exception]:
        return self.storage.write(STATE_KEY, dump_record(state))
