"""Filesystem storage: one file per record under a root directory."""
from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from serialforge.shared_kernel import Result, NotFoundError, StorageError
from .interfaces import Storage, RecordMetadata, validate_key

logger = logging.getLogger(__name__)


class FileSystemStorage(Storage):
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root.joinpath(*key.split("/"))

    def read(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        path = self._path(key)
        try:
            return Result.success(path.read_bytes())
        except FileNotFoundError:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        except OSError as exc:
            logger.error("Storage read failed for %s: %s", key, exc)
            return Result.failure(StorageError(f"Read failed for '{key}': {exc}", details={"key": key}))

    def write(self, key: str, data: bytes):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        path = self._path(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
            return Result.success(None)
        except OSError as exc:
            logger.error("Storage write failed for %s: %s", key, exc)
            return Result.failure(StorageError(f"Write failed for '{key}': {exc}", details={"key": key}))
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def list(self, prefix: str = "") -> Result[List[str], StorageError]:
        if not self.root.exists():
            return Result.success([])
        try:
            keys = []
            for path in self.root.rglob("*"):
                if not path.is_file() or path.name.startswith("."):
                    continue
                key = path.relative_to(self.root).as_posix()
                if key.startswith(prefix):
                    keys.append(key)
            return Result.success(sorted(keys))
        except OSError as exc:
            return Result.failure(StorageError(f"List failed for '{prefix}': {exc}"))

    def delete(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        try:
            self._path(key).unlink()
            return Result.success(None)
        except FileNotFoundError:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        except OSError as exc:
            return Result.failure(StorageError(f"Delete failed for '{key}': {exc}"))

    def exists(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        return Result.success(self._path(key).is_file())

    def stat(self, key: str):
        checked = validate_key(key)
        if checked.is_failure:
            return checked
        try:
            info = self._path(key).stat()
        except FileNotFoundError:
            return Result.failure(NotFoundError(f"Record '{key}' not found"))
        except OSError as exc:
            return Result.failure(StorageError(f"Stat failed for '{key}': {exc}"))
        return Result.success(
            RecordMetadata(
                key=key,
                size=info.st_size,
                created_at=datetime.fromtimestamp(info.st_ctime, tz=timezone.utc),
                modified_at=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
            )
        )
