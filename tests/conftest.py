# tests/conftest.py
"""Shared test fixtures for all unit and integration tests.

Provides settings without .env, in-memory collaborators, a scriptable fake
summarization provider and a sleep recorder. No network access; all
provider SDK clients are mocked.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import Document
from budgetdigest.llm.base_provider import BaseAIProvider
from budgetdigest.llm.errors import AIProviderError
from budgetdigest.llm.models import (
    HealthCheckResult,
    ProviderType,
    SummarizeOptions,
    SummarizeResult,
    calculate_word_count,
)
from budgetdigest.pipeline.events import RecordingEmitter
from budgetdigest.storage.local_store import LocalObjectStore
from budgetdigest.store.memory_store import MemoryDocumentStore


# === FAKES ===


class FakeProvider(BaseAIProvider):
    """Scriptable provider.

    ``behavior`` is either an exception (raised on every call), or a
    callable ``(text, options) -> str | Exception`` deciding per call.
    """

    def __init__(
        self,
        name: str = "Fake",
        confidence: float = 0.85,
        behavior: Any = None,
        available: bool = True,
        provider_type: ProviderType = "openai",
    ) -> None:
        self._name = name
        self._confidence = confidence
        self._behavior = behavior
        self._available = available
        self._type = provider_type
        self.calls: list[tuple[str, SummarizeOptions | None]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider_type(self) -> ProviderType:
        return self._type

    def is_available(self) -> bool:
        return self._available

    async def summarize(
        self, text: str, options: SummarizeOptions | None = None
    ) -> SummarizeResult:
        self.calls.append((text, options))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            outcome: Any
            if isinstance(self._behavior, BaseException):
                outcome = self._behavior
            elif callable(self._behavior):
                outcome = self._behavior(text, options)
            else:
                outcome = f"{self._name} summary of {len(text)} characters of budget text."
            if isinstance(outcome, BaseException):
                raise outcome
            return SummarizeResult(
                summary=outcome,
                confidence=self._confidence,
                model_version=f"{self._name.lower()}-model",
                provider=self._name,
                target_length=400,
                actual_length=calculate_word_count(outcome),
            )
        finally:
            self.in_flight -= 1

    async def test_connection(self) -> HealthCheckResult:
        if isinstance(self._behavior, BaseException):
            return HealthCheckResult(success=False, error=str(self._behavior))
        return HealthCheckResult(success=True, latency_ms=1)


class SleepRecorder:
    """Drop-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# === FIXTURES ===


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    return FakeProvider


@pytest.fixture
def auth_error() -> AIProviderError:
    return AIProviderError.auth_failed("OpenAI")


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Defaults with in-memory document store and a temp object store."""
    return Settings(
        _env_file=None,
        document_store="memory",
        object_store="local",
        object_store_root=tmp_path / "objects",
    )


@pytest.fixture
def documents() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def objects(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "objects")


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def budget_text() -> str:
    """Roughly 3,000 characters of budget prose with sentence delimiters."""
    sentences = [
        "The National Treasury presented the budget estimates for the fiscal year.",
        "Total expenditure is projected at KSh 3.6 trillion, an increase of 8 percent.",
        "Education receives the largest allocation at KSh 628 billion.",
        "Health spending rises to KSh 141 billion to expand primary care.",
        "Roads and transport infrastructure are allocated KSh 280 billion.",
        "County governments will receive an equitable share of KSh 385 billion.",
        "Revenue collection targets rely on improved compliance by the KRA.",
        "The fiscal deficit is expected to narrow to 4.3 percent of GDP.",
        "Public debt service remains a key priority for the Treasury.",
        "Agriculture programmes focus on fertilizer subsidies and irrigation.",
    ]
    return " ".join(sentences * 4)


@pytest.fixture
def sample_document() -> Document:
    return Document(
        id="doc-001",
        title="Budget Statement",
        file_name="budget.pdf",
        file_reference="doc-001/budget.pdf",
        file_size=1024,
    )
