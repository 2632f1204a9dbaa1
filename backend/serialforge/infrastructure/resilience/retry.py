"""Retry helpers with exponential backoff."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


async def async_retry(
    func: Callable[..., Any],
    *args: Any,
    retries: int = 3,
    backoff: float = 0.5,
    jitter: float = 0.1,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    rng: Optional[random.Random] = None,
    **kwargs: Any,
) -> Any:
    rng = rng or random.Random()
    delay = backoff
    attempt = 0
    while True:
        try:
            if asyncio.iscoroutinefunction(func):
                return await func(*args, **kwargs)
            return await asyncio.to_thread(func, *args, **kwargs)
        except exceptions as exc:
            attempt += 1
            if attempt > retries:
                raise
            logger.warning("Attempt %s failed (%s), retrying in %.2fs", attempt, exc, delay)
            await asyncio.sleep(delay + rng.random() * jitter)
            delay *= 2
