# src/pipeline/registry.py
"""Stage registry: named handlers bound to trigger events.

Each stage declares its runtime policy (retries, concurrency ceiling,
timeout). The pipeline code does not enforce these itself; whatever job
runtime drives the handlers reads them from here.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from budgetdigest.config.settings import Settings
from budgetdigest.pipeline.events import (
    DOCUMENT_UPLOADED,
    EXTRACTION_COMPLETED,
    FUNCTION_FAILED,
    SUMMARIZATION_COMPLETED,
)

logger = logging.getLogger(__name__)

EXTRACT_FUNCTION = "extract-document"
SUMMARIZE_FUNCTION = "summarize-document"
TRANSLATE_FUNCTION = "translate-summary"
FAILURE_FUNCTION = "handle-function-failure"

Handler = Callable[[Any], Awaitable[Any]]


class RegistryError(Exception):
    """Raised when a stage lookup or registration fails."""


class StageConfig(BaseModel):
    """Declarative runtime policy for one stage handler."""

    function_id: str
    trigger: str
    retries: int = 0
    concurrency: int = 1
    timeout_s: float = 60.0


def stage_configs(settings: Settings) -> dict[str, StageConfig]:
    """Stage policies built from settings, keyed by function id."""
    configs = [
        StageConfig(
            function_id=EXTRACT_FUNCTION,
            trigger=DOCUMENT_UPLOADED,
            retries=settings.extraction_retries,
            concurrency=settings.extraction_concurrency,
            timeout_s=settings.extraction_timeout_s,
        ),
        StageConfig(
            function_id=SUMMARIZE_FUNCTION,
            trigger=EXTRACTION_COMPLETED,
            retries=settings.summarization_retries,
            concurrency=settings.summarization_concurrency,
            timeout_s=settings.summarization_timeout_s,
        ),
        StageConfig(
            function_id=TRANSLATE_FUNCTION,
            trigger=SUMMARIZATION_COMPLETED,
            retries=settings.translation_retries,
            concurrency=settings.translation_concurrency,
            timeout_s=settings.translation_timeout_s,
        ),
        StageConfig(
            function_id=FAILURE_FUNCTION,
            trigger=FUNCTION_FAILED,
            retries=0,
            concurrency=10,
            timeout_s=30.0,
        ),
    ]
    return {c.function_id: c for c in configs}


class StageRegistry:
    """Maps trigger events to (config, handler) pairs."""

    def __init__(self) -> None:
        self._stages: dict[str, tuple[StageConfig, Handler]] = {}

    @property
    def function_ids(self) -> list[str]:
        return sorted(self._stages)

    def register(self, config: StageConfig, handler: Handler) -> None:
        if config.function_id in self._stages:
            logger.warning("Overwriting existing stage: %s", config.function_id)
        self._stages[config.function_id] = (config, handler)

    def get(self, function_id: str) -> tuple[StageConfig, Handler]:
        try:
            return self._stages[function_id]
        except KeyError:
            raise RegistryError(f"Stage '{function_id}' not registered") from None

    def handlers_for(self, event_name: str) -> list[tuple[StageConfig, Handler]]:
        return [entry for entry in self._stages.values() if entry[0].trigger == event_name]
