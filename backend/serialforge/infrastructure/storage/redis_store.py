"""Redis-backed storage."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import redis

from serialforge.shared_kernel import Result, NotFoundError, StorageError
from .interfaces import Storage, RecordMetadata, validate_key

logger = logging.getLogger(__name__)


class RedisStorage(Storage):
    """Stores each record as a string key plus a small metadata hash."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        prefix: str = "serialforge",
        client: Any = None,
    ) -> None:
        self.prefix = prefix
        self.redis = client if client is not None else redis.from_url(redis_url, decode_responses=False)

    def _data_key(self, key: str) -> str:
        return f"{self.prefix}:data:{key}"

    def _meta_key(self, key: str) -> str:
        return f"{self.prefix}:meta:{key}"

    def read(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        try:
            data = self.redis.get(self._data_key(key))
        except redis.RedisError as exc:
            logger.error("Redis get error for %s: %s", key, exc)
            return Result.failure(StorageError(f"Read failed for '{key}': {exc}"))
        if data is None:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        return Result.success(bytes(data))

    def write(self, key: str, data: bytes):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        now = datetime.now(timezone.utc).isoformat()
        try:
            created = self.redis.hget(self._meta_key(key), "created_at")
            pipe = self.redis.pipeline(transaction=True)
            pipe.set(self._data_key(key), data)
            pipe.hset(
                self._meta_key(key),
                mapping={
                    "created_at": created or now,
                    "modified_at": now,
                    "size": len(data),
                },
            )
            pipe.execute()
        except redis.RedisError as exc:
            logger.error("Redis set error for %s: %s", key, exc)
            return Result.failure(StorageError(f"Write failed for '{key}': {exc}"))
        return Result.success(None)

    def list(self, prefix: str = "") -> Result[List[str], StorageError]:
        base = self._data_key("")
        try:
            keys = []
            for raw in self.redis.scan_iter(match=f"{base}{prefix}*", count=100):
                name = raw.decode("utf-8") if isinstance(raw, bytes) else raw
                keys.append(name[len(base):])
        except redis.RedisError as exc:
            return Result.failure(StorageError(f"List failed for '{prefix}': {exc}"))
        return Result.success(sorted(keys))

    def delete(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        try:
            removed = self.redis.delete(self._data_key(key))
            self.redis.delete(self._meta_key(key))
        except redis.RedisError as exc:
            return Result.failure(StorageError(f"Delete failed for '{key}': {exc}"))
        if not removed:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        return Result.success(None)

    def exists(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        try:
            return Result.success(bool(self.redis.exists(self._data_key(key))))
        except redis.RedisError as exc:
            return Result.failure(StorageError(f"Exists failed for '{key}': {exc}"))

    def stat(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        try:
            meta = self.redis.hgetall(self._meta_key(key))
        except redis.RedisError as exc:
            return Result.failure(StorageError(f"Stat failed for '{key}': {exc}"))
        if not meta:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        decoded = {
            (k.decode() if isinstance(k, bytes) else k): (v.decode() if isinstance(v, bytes) else v)
            for k, v in meta.items()
        }
        return Result.success(
            RecordMetadata(
                key=key,
                size=int(decoded.get("size", 0)),
                created_at=datetime.fromisoformat(decoded["created_at"]),
                modified_at=datetime.fromisoformat(decoded["modified_at"]),
            )
        )
