# src/llm/retry.py
"""Per-provider retry policy with exponential backoff.

Only errors classified as retryable are retried; everything else is
raised on the first failure so the provider chain can move on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from budgetdigest.llm.errors import AIProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """max_retries extra attempts after the first call."""

    max_retries: int
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay before the retry following attempt (0-based): base * factor^attempt."""
    return policy.base_delay_s * (policy.backoff_factor ** attempt)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    provider: str,
    policy: RetryPolicy,
    map_error: Callable[[Exception], AIProviderError],
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Execute an async operation with retry on retryable provider errors.

    Raises:
        AIProviderError: The classified error of the last attempt.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            error = e if isinstance(e, AIProviderError) else map_error(e)
            if not error.retryable or attempt >= policy.max_retries:
                if error is e:
                    raise
                raise error from e

            delay = compute_delay(policy, attempt)
            attempt += 1
            logger.warning(
                "%s: %s (attempt %d/%d), retrying in %.1fs",
                provider, error.error_type, attempt, policy.max_retries, delay,
            )
            await sleep(delay)
