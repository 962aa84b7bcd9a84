# src/llm/provider_chain.py
"""Ordered fallback across summarization providers.

Availability degrades gracefully: primary LLM, then hosted model, then the
local extractive summarizer. Errors are aggregated only when the last
provider also fails.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from budgetdigest.llm.base_provider import BaseAIProvider
from budgetdigest.llm.circuit_breaker import CircuitStatus
from budgetdigest.llm.errors import (
    AIProviderError,
    NoProvidersAvailableError,
    ProviderChainError,
)
from budgetdigest.llm.models import SummarizeOptions, SummarizeResult
from budgetdigest.logging.context import set_provider_context

logger = logging.getLogger(__name__)


class ProviderHealth(BaseModel):
    provider: str
    available: bool
    healthy: bool
    latency_ms: int | None = None
    error: str | None = None


class ProviderChain:
    def __init__(self, providers: list[BaseAIProvider]) -> None:
        self._providers = [p for p in providers if p.is_available()]
        if not self._providers:
            raise NoProvidersAvailableError(
                "No AI providers available. At least one provider must be configured."
            )
        logger.info(
            "Provider chain initialized: %s", " -> ".join(self.provider_names)
        )

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    @property
    def providers(self) -> list[BaseAIProvider]:
        return list(self._providers)

    async def summarize(
        self, text: str, options: SummarizeOptions | None = None
    ) -> SummarizeResult:
        """Try each provider in order and return the first success.

        Every failure moves on to the next provider. Retryable errors have
        already spent the provider's own retry budget.

        Raises:
            ProviderChainError: When the last provider fails.
        """
        errors: list[tuple[str, str]] = []
        total = len(self._providers)

        for i, provider in enumerate(self._providers):
            is_last = i == total - 1
            set_provider_context(provider.name)
            try:
                logger.debug("Attempt %d/%d: %s", i + 1, total, provider.name)
                result = await provider.summarize(text, options)
            except Exception as e:
                errors.append((provider.name, str(e)))
                error_type = e.error_type if isinstance(e, AIProviderError) else "unknown"
                if is_last:
                    logger.error(
                        "%s failed (%s): %s; all %d providers failed",
                        provider.name, error_type, e, total,
                    )
                    break
                logger.warning(
                    "%s failed (%s), trying next provider: %s",
                    provider.name, error_type, e,
                )
                continue
            finally:
                set_provider_context(None)

            if i > 0:
                logger.info(
                    "Used fallback provider %s after %d failed attempts",
                    provider.name, i,
                )
            logger.info(
                "Success with %s (confidence %.2f)", provider.name, result.confidence
            )
            return result

        raise ProviderChainError(errors)

    async def test_all_providers(self) -> list[ProviderHealth]:
        results: list[ProviderHealth] = []
        for provider in self._providers:
            try:
                health = await provider.test_connection()
            except Exception as e:
                results.append(
                    ProviderHealth(
                        provider=provider.name, available=True, healthy=False, error=str(e)
                    )
                )
                continue
            results.append(
                ProviderHealth(
                    provider=provider.name,
                    available=True,
                    healthy=health.success,
                    latency_ms=health.latency_ms,
                    error=health.error,
                )
            )
        return results

    def circuit_status(self) -> dict[str, CircuitStatus]:
        statuses: dict[str, CircuitStatus] = {}
        for provider in self._providers:
            status = provider.circuit_status()
            if status is not None:
                statuses[provider.name] = status
        return statuses
