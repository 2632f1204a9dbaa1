"""Storage capability: a key/blob store regardless of backing medium."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List

from serialforge.shared_kernel import Result, StorageError, NotFoundError, ValidationError


@dataclass(frozen=True)
class RecordMetadata:
    key: str
    size: int
    created_at: datetime
    modified_at: datetime


def validate_key(key: str) -> Result[str, ValidationError]:
    """Keys are relative, slash separated and never escape the store root."""
    if not key or key.startswith("/") or "\\" in key:
        return Result.failure(ValidationError(f"Invalid storage key '{key}'", code="INVALID_KEY"))
    if any(part in {"", ".", ".."} for part in key.split("/")):
        return Result.failure(ValidationError(f"Invalid storage key '{key}'", code="INVALID_KEY"))
    return Result.success(key)


class Storage(ABC):
    """Durable named-record store.

    Every operation returns a ``Result``; not-found and I/O failures are
    expected conditions and never raise.
    """

    @abstractmethod
    def read(self, key: str) -> Result[bytes, NotFoundError | StorageError]:
        ...

    @abstractmethod
    def write(self, key: str, data: bytes) -> Result[None, StorageError]:
        """Persist ``data``; returns only once the write is durable."""

    @abstractmethod
    def list(self, prefix: str = "") -> Result[List[str], StorageError]:
        ...

    @abstractmethod
    def delete(self, key: str) -> Result[None, NotFoundError | StorageError]:
        ...

    @abstractmethod
    def exists(self, key: str) -> Result[bool, StorageError]:
        ...

    @abstractmethod
    def stat(self, key: str) -> Result[RecordMetadata, NotFoundError | StorageError]:
        ...
