# src/pipeline/dispatcher.py
"""In-process job runtime for local runs and tests.

Routes emitted events to registered stage handlers and applies each
stage's declared policy:
  - per-stage concurrency ceiling (asyncio.Semaphore)
  - per-attempt timeout
  - re-invocation on retryable errors with exponential backoff
  - ``function.failed`` after retries are exhausted

No queue, persistence or scheduling: events are delivered as asyncio
tasks and ``drain()`` waits for the cascade to settle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import BaseModel

from budgetdigest.llm.retry import Sleep
from budgetdigest.logging.context import clear_context
from budgetdigest.pipeline.errors import StageError, is_retryable
from budgetdigest.pipeline.events import (
    FUNCTION_FAILED,
    EventEmitter,
    EventEnvelope,
    FunctionFailed,
)
from budgetdigest.pipeline.registry import Handler, StageConfig, StageRegistry

logger = logging.getLogger(__name__)


class LocalDispatcher(EventEmitter):
    """Deliver events to stage handlers inside the current event loop."""

    def __init__(
        self,
        registry: StageRegistry | None = None,
        retry_base_delay_s: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.registry = registry or StageRegistry()
        self._retry_base_delay_s = retry_base_delay_s
        self._sleep = sleep
        self._semaphores: dict[str, asyncio.Semaphore] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self.history: list[EventEnvelope] = []
        self.failures: list[FunctionFailed] = []

    def register(self, config: StageConfig, handler: Handler) -> None:
        self.registry.register(config, handler)

    def _semaphore(self, config: StageConfig) -> asyncio.Semaphore:
        sem = self._semaphores.get(config.function_id)
        if sem is None:
            sem = asyncio.Semaphore(max(1, config.concurrency))
            self._semaphores[config.function_id] = sem
        return sem

    async def emit(self, name: str, payload: BaseModel) -> None:
        envelope = EventEnvelope(name=name, data=payload.model_dump())
        self.history.append(envelope)
        handlers = self.registry.handlers_for(name)
        if not handlers:
            logger.debug("No handlers for event %s", name)
            return
        for config, handler in handlers:
            task = asyncio.create_task(self._invoke(config, handler, payload, envelope))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until no handler task is pending, including cascaded ones."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _invoke(
        self,
        config: StageConfig,
        handler: Handler,
        payload: BaseModel,
        envelope: EventEnvelope,
    ) -> None:
        async with self._semaphore(config):
            attempt = 0
            while True:
                try:
                    await asyncio.wait_for(handler(payload), config.timeout_s)
                    return
                except Exception as e:
                    error = e
                    if isinstance(e, asyncio.TimeoutError):
                        error = TimeoutError(
                            f"{config.function_id} timed out after {config.timeout_s}s"
                        )
                    if attempt < config.retries and is_retryable(error):
                        delay = self._retry_base_delay_s * (2 ** attempt)
                        attempt += 1
                        logger.warning(
                            "%s failed (%s), retry %d/%d in %.1fs",
                            config.function_id, error, attempt, config.retries, delay,
                        )
                        await self._sleep(delay)
                        continue
                    break
                finally:
                    clear_context()

        logger.error(
            "%s failed after %d attempt(s): %s",
            config.function_id, attempt + 1, error,
        )
        if envelope.name == FUNCTION_FAILED:
            return
        failure = FunctionFailed(
            function_id=config.function_id,
            error=str(error),
            error_type=error.error_type if isinstance(error, StageError) else "unknown",
            event=envelope,
        )
        self.failures.append(failure)
        await self.emit(FUNCTION_FAILED, failure)
