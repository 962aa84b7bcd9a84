# src/llm/base_provider.py
"""Abstract summarization provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from budgetdigest.llm.circuit_breaker import CircuitStatus
from budgetdigest.llm.models import (
    HealthCheckResult,
    ProviderType,
    SummarizeOptions,
    SummarizeResult,
)


class BaseAIProvider(ABC):
    """Uniform contract for every provider in the fallback chain."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name recorded as summary_provider (e.g. 'OpenAI')."""

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Provider identifier (openai, huggingface, extractive)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Credentials/config present. Must not make a network call."""

    @abstractmethod
    async def summarize(
        self, text: str, options: SummarizeOptions | None = None
    ) -> SummarizeResult:
        """Summarize text.

        Raises:
            AIProviderError: Classified failure with a retryable flag.
        """

    @abstractmethod
    async def test_connection(self) -> HealthCheckResult:
        """Lightweight health check."""

    def circuit_status(self) -> CircuitStatus | None:
        """Breaker state for providers that carry one."""
        return None
