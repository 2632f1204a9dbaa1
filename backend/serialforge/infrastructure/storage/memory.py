"""In-memory storage for tests and local usage."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Tuple

from serialforge.shared_kernel import Result, NotFoundError
from .interfaces import Storage, RecordMetadata, validate_key


class InMemoryStorage(Storage):
    def __init__(self) -> None:
        self._records: Dict[str, Tuple[bytes, datetime, datetime]] = {}

    def read(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        record = self._records.get(key)
        if record is None:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        return Result.success(record[0])

    def write(self, key: str, data: bytes):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        now = datetime.now(timezone.utc)
        created = self._records[key][1] if key in self._records else now
        self._records[key] = (bytes(data), created, now)
        return Result.success(None)

    def list(self, prefix: str = "") -> Result[List[str], Exception]:
        return Result.success(sorted(key for key in self._records if key.startswith(prefix)))

    def delete(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        if key not in self._records:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        del self._records[key]
        return Result.success(None)

    def exists(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        return Result.success(key in self._records)

    def stat(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        record = self._records.get(key)
        if record is None:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        data, created, modified = record
        return Result.success(
            RecordMetadata(key=key, size=len(data), created_at=created, modified_at=modified)
        )
