from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from vanish.exceptions.exceptions import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


async def with_optimistic_retry(
    attempt: Callable[[int], Awaitable[T | None]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    operation: str = "Operation",
) -> T:
    """Run a read-modify-write attempt until it wins its compare-and-swap.

    ``attempt`` receives the 1-based attempt number and must re-read the record
    itself on every call. Returning ``None`` means another writer got there
    first; any exception propagates untouched. After ``max_attempts`` lost
    races a ``ConflictError`` is raised instead of applying a stale write.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt_no in range(1, max_attempts + 1):
        result = await attempt(attempt_no)
        if result is not None:
            return result
        logger.info("[optimistic_retry] operation=%s attempt=%s lost race", operation, attempt_no)

    logger.warning("[optimistic_retry] operation=%s exhausted %s attempts", operation, max_attempts)
    raise ConflictError(f"{operation} busy, retry")
