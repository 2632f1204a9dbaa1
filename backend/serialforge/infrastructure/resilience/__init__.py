"""Resilience utilities (retry, timeout)."""

from .retry import async_retry
from .timeout import with_timeout

__all__ = [
    "async_retry",
    "with_timeout",
]
