"""Storage backends behind the repository layer."""

from serialforge.core.config import Settings

from .interfaces import Storage, RecordMetadata, validate_key
from .memory import InMemoryStorage
from .filesystem import FileSystemStorage
from .redis_store import RedisStorage


def build_storage(settings: Settings) -> Storage:
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryStorage()
    if settings.STORAGE_BACKEND == "redis":
        return RedisStorage(settings.REDIS_URL, prefix=settings.REDIS_KEY_PREFIX)
    return FileSystemStorage(settings.STORAGE_ROOT)


__all__ = [
    "Storage",
    "RecordMetadata",
    "validate_key",
    "InMemoryStorage",
    "FileSystemStorage",
    "RedisStorage",
    "build_storage",
]
