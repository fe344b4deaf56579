"""Fixed-count, fixed-delay retry used for every remote media call.

The policy is passed in explicitly (tests use ``NO_DELAY``); there is no
backoff curve, every pause has the same length.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from app.services.media_errors import TransientNetworkError
from app.utils.logger import logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_seconds: float = 0.7

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")


NO_DELAY = RetryPolicy(max_attempts=3, delay_seconds=0.0)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (TransientNetworkError,),
    label: str = "media call",
) -> T:
    """Await ``fn()`` up to ``policy.max_attempts`` times.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates immediately. After the last attempt the last error is re-raised
    unchanged so callers can still inspect its type and payload.
    """

    last_exc: BaseException | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except retry_on as exc:
            last_exc = exc
            if attempt >= policy.max_attempts:
                break
            logger.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.2fs",
                label,
                attempt,
                policy.max_attempts,
                exc,
                policy.delay_seconds,
            )
            if policy.delay_seconds:
                await asyncio.sleep(policy.delay_seconds)

    logger.error("%s failed after %s attempts: %s", label, policy.max_attempts, last_exc)
    raise last_exc
