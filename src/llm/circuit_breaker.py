# src/llm/circuit_breaker.py
"""Consecutive-failure circuit breaker, one instance per provider.

Closed until failure_count reaches threshold, then Open for cooldown_s.
While Open, call() rejects immediately with a circuit_open error without
invoking the wrapped operation. A single success closes it again.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel

from budgetdigest.llm.errors import AIProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitStatus(BaseModel):
    name: str
    is_open: bool
    failure_count: int
    threshold: int
    open_until: float | None = None


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        threshold: int,
        cooldown_s: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.threshold = threshold
        self.cooldown_s = cooldown_s
        self._clock = clock
        self._failure_count = 0
        self._open_until: float | None = None

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def is_open(self) -> bool:
        """True while tripped; auto-closes once the cooldown has elapsed."""
        if self._open_until is None:
            return False
        if self._clock() >= self._open_until:
            logger.info("Circuit breaker for %s closed after cooldown", self.name)
            self._open_until = None
            self._failure_count = 0
            return False
        return True

    def open_until(self) -> datetime | None:
        """Wall-clock time the current open period ends, None while closed."""
        if not self.is_open():
            return None
        remaining = self._open_until - self._clock()
        return datetime.now(timezone.utc) + timedelta(seconds=remaining)

    def rejection(self) -> AIProviderError:
        return AIProviderError.circuit_open(self.name, self.open_until())

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._failure_count >= self.threshold and self._open_until is None:
            self._open_until = self._clock() + self.cooldown_s
            logger.warning(
                "Circuit breaker for %s opened after %d failures (cooldown %.0fs)",
                self.name, self._failure_count, self.cooldown_s,
            )

    def record_success(self) -> None:
        self._failure_count = 0
        self._open_until = None

    def status(self) -> CircuitStatus:
        is_open = self.is_open()
        return CircuitStatus(
            name=self.name,
            is_open=is_open,
            failure_count=self._failure_count,
            threshold=self.threshold,
            open_until=self._open_until if is_open else None,
        )

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run fn through the breaker, recording its outcome."""
        if self.is_open():
            raise self.rejection()
        try:
            result = await fn(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result
