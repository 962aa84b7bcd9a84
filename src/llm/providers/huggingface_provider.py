# src/llm/providers/huggingface_provider.py
"""Hosted open-source summarization provider (secondary).

Calls the Hugging Face Inference API through huggingface_hub's
AsyncInferenceClient. Same breaker and retry shape as the primary
provider, lower fixed confidence.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any

from budgetdigest.llm.base_provider import BaseAIProvider
from budgetdigest.llm.circuit_breaker import CircuitBreaker, CircuitStatus
from budgetdigest.llm.errors import AIProviderError, map_provider_exception
from budgetdigest.llm.models import (
    HealthCheckResult,
    ProviderType,
    SummarizeOptions,
    SummarizeResult,
    calculate_word_count,
)
from budgetdigest.llm.rate_limiter import RateLimiter
from budgetdigest.llm.retry import RetryPolicy, Sleep, with_retry

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY = "huggingface"
CONFIDENCE = 0.75
DEFAULT_MIN_LENGTH = 200
DEFAULT_MAX_LENGTH = 600
HEALTH_CHECK_TEXT = (
    "The national treasury allocated funds to health, education and roads. "
    "Spending on infrastructure increased compared with the previous year."
)


class HuggingFaceProvider(BaseAIProvider):
    """BART-style summarization over the Inference API."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "facebook/bart-large-cnn",
        timeout_ms: int = 30_000,
        max_retries: int = 2,
        retry_base_delay_ms: int = 1000,
        rate_limiter: RateLimiter | None = None,
        breaker: CircuitBreaker | None = None,
        client: Any = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_ms = timeout_ms
        self._max_retries = max_retries
        self._retry_base_delay_s = retry_base_delay_ms / 1000
        self._rate_limiter = rate_limiter
        self._breaker = breaker or CircuitBreaker(
            "HuggingFace", threshold=15, cooldown_s=300
        )
        self._client = client
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "HuggingFace"

    @property
    def provider_type(self) -> ProviderType:
        return "huggingface"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def circuit_status(self) -> CircuitStatus:
        return self._breaker.status()

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise AIProviderError.auth_failed(self.name)
            from huggingface_hub import AsyncInferenceClient

            self._client = AsyncInferenceClient(model=self._model, token=self._api_key)
        return self._client

    def map_error(self, error: Exception) -> AIProviderError:
        return map_provider_exception(error, self.name, self._timeout_ms)

    async def _call(self, text: str, min_length: int, max_length: int, timeout_s: float) -> str:
        output = await asyncio.wait_for(
            self._get_client().summarization(
                text,
                model=self._model,
                generate_parameters={
                    "max_length": max_length,
                    "min_length": min_length,
                    "do_sample": False,
                },
            ),
            timeout_s,
        )
        return (getattr(output, "summary_text", None) or "").strip()

    async def summarize(
        self, text: str, options: SummarizeOptions | None = None
    ) -> SummarizeResult:
        options = options or SummarizeOptions()

        if self._breaker.is_open():
            logger.warning("HuggingFace circuit breaker is open, skipping call")
            raise self._breaker.rejection()

        if self._rate_limiter is not None:
            status = self._rate_limiter.check_limit(RATE_LIMIT_KEY)
            if not status.allowed:
                logger.warning(
                    "HuggingFace rate limit exceeded: %d/%d", status.current, status.limit
                )
                raise AIProviderError.rate_limited(self.name, status.reset_at)

        max_length = options.max_length or DEFAULT_MAX_LENGTH
        min_length = options.min_length or DEFAULT_MIN_LENGTH
        timeout_s = (options.timeout_ms or self._timeout_ms) / 1000
        retries = self._max_retries if options.retries is None else options.retries

        async def _attempt() -> str:
            return await self._breaker.call(
                self._call, text, min_length, max_length, timeout_s
            )

        t0 = time.monotonic()
        summary = await with_retry(
            _attempt,
            provider=self.name,
            policy=RetryPolicy(retries, self._retry_base_delay_s),
            map_error=self.map_error,
            sleep=self._sleep,
        )
        if not summary:
            raise AIProviderError(
                "HuggingFace returned empty summary", self.name, "unknown"
            )

        if self._rate_limiter is not None:
            self._rate_limiter.increment(RATE_LIMIT_KEY)

        actual_words = calculate_word_count(summary)
        logger.info(
            "HuggingFace summarization successful: %d words, %dms",
            actual_words, int((time.monotonic() - t0) * 1000),
        )
        return SummarizeResult(
            summary=summary,
            confidence=CONFIDENCE,
            model_version=self._model,
            provider=self.name,
            target_length=math.ceil((min_length + max_length) / 2),
            actual_length=actual_words,
        )

    async def test_connection(self) -> HealthCheckResult:
        if not self.is_available():
            return HealthCheckResult(
                success=False, error="HuggingFace API key not configured"
            )
        if self._breaker.is_open():
            return HealthCheckResult(
                success=False,
                error="Circuit breaker is open - too many recent failures",
                metadata=self._breaker.status().model_dump(),
            )

        t0 = time.monotonic()
        try:
            summary = await self._call(HEALTH_CHECK_TEXT, 5, 30, 10.0)
        except Exception as e:
            error = self.map_error(e)
            return HealthCheckResult(
                success=False,
                latency_ms=int((time.monotonic() - t0) * 1000),
                error=error.message,
                metadata={"error_type": error.error_type},
            )
        return HealthCheckResult(
            success=True,
            latency_ms=int((time.monotonic() - t0) * 1000),
            metadata={"model": self._model, "summary_length": len(summary)},
        )
