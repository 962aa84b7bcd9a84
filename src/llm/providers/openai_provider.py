# src/llm/providers/openai_provider.py
"""OpenAI chat-completion summarization provider (primary).

Uses the official openai SDK (AsyncOpenAI). Structured markdown prompts,
dynamic target length, rate-limit gate, circuit breaker and retry with
exponential backoff for retryable errors.
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
    TokenUsage,
    calculate_word_count,
)
from budgetdigest.llm.prompts import build_summarization_messages, check_context_fit
from budgetdigest.llm.rate_limiter import RateLimiter
from budgetdigest.llm.retry import RetryPolicy, Sleep, with_retry
from budgetdigest.llm.summary_length import calculate_summary_length

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY = "openai"
CONFIDENCE = 0.85
DEFAULT_MIN_WORDS = 200
DEFAULT_MAX_WORDS = 600
HEALTH_CHECK_TIMEOUT_S = 5.0


class OpenAIProvider(BaseAIProvider):
    """GPT summarization provider."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gpt-3.5-turbo-16k",
        timeout_ms: int = 30_000,
        max_retries: int = 2,
        retry_base_delay_ms: int = 1000,
        temperature: float = 0.7,
        context_window: int = 16_385,
        max_output_tokens: int = 4000,
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
        self._temperature = temperature
        self._context_window = context_window
        self._max_output_tokens = max_output_tokens
        self._rate_limiter = rate_limiter
        self._breaker = breaker or CircuitBreaker("OpenAI", threshold=5, cooldown_s=60)
        self._client = client
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "OpenAI"

    @property
    def provider_type(self) -> ProviderType:
        return "openai"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def circuit_status(self) -> CircuitStatus:
        return self._breaker.status()

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise AIProviderError.auth_failed(self.name)
            import openai

            # Retries are handled here, not by the SDK.
            self._client = openai.AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    def map_error(self, error: Exception) -> AIProviderError:
        return map_provider_exception(error, self.name, self._timeout_ms)

    def _resolve_lengths(self, text: str, options: SummarizeOptions) -> tuple[int, int, int]:
        if options.dynamic_length and not options.has_explicit_lengths:
            length = calculate_summary_length(len(text), options.length_percentage)
            return length.min_length, length.max_length, length.target_length
        min_words = options.min_length or DEFAULT_MIN_WORDS
        max_words = options.max_length or DEFAULT_MAX_WORDS
        return min_words, max_words, math.ceil((min_words + max_words) / 2)

    async def summarize(
        self, text: str, options: SummarizeOptions | None = None
    ) -> SummarizeResult:
        options = options or SummarizeOptions()

        if self._breaker.is_open():
            logger.warning("OpenAI circuit breaker is open, skipping call")
            raise self._breaker.rejection()

        if self._rate_limiter is not None:
            status = self._rate_limiter.check_limit(RATE_LIMIT_KEY)
            if not status.allowed:
                logger.warning(
                    "OpenAI rate limit exceeded: %d/%d", status.current, status.limit
                )
                raise AIProviderError.rate_limited(self.name, status.reset_at)
            if status.remaining < status.limit * 0.25:
                logger.warning(
                    "OpenAI approaching rate limit: %d calls remaining", status.remaining
                )

        min_words, max_words, target_words = self._resolve_lengths(text, options)
        messages = build_summarization_messages(
            text,
            min_words,
            max_words,
            chunk_index=options.chunk_index,
            total_chunks=options.total_chunks,
            is_multi_level=options.is_multi_level,
            language=options.language,
        )
        fits, estimated = check_context_fit(
            messages, self._max_output_tokens, self._context_window
        )
        if not fits:
            # The API truncates; proceed anyway.
            logger.warning(
                "Prompt may exceed context window: %d tokens (limit %d)",
                estimated, self._context_window,
            )

        timeout_ms = options.timeout_ms or self._timeout_ms
        retries = self._max_retries if options.retries is None else options.retries
        client = self._get_client()

        async def _create() -> Any:
            return await asyncio.wait_for(
                client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=self._temperature,
                    max_tokens=self._max_output_tokens,
                ),
                timeout_ms / 1000,
            )

        async def _attempt() -> Any:
            return await self._breaker.call(_create)

        t0 = time.monotonic()
        try:
            completion = await with_retry(
                _attempt,
                provider=self.name,
                policy=RetryPolicy(retries, self._retry_base_delay_s),
                map_error=self.map_error,
                sleep=self._sleep,
            )
        except AIProviderError as e:
            logger.error(
                "OpenAI summarization failed after %dms: %s",
                int((time.monotonic() - t0) * 1000), e,
            )
            raise
        latency = int((time.monotonic() - t0) * 1000)

        summary = (completion.choices[0].message.content or "").strip()
        if not summary:
            raise AIProviderError("OpenAI returned empty summary", self.name, "unknown")

        usage = completion.usage
        tokens = TokenUsage(
            input=usage.prompt_tokens if usage else 0,
            output=usage.completion_tokens if usage else 0,
            total=usage.total_tokens if usage else 0,
            model=completion.model,
        )
        if self._rate_limiter is not None:
            self._rate_limiter.increment(RATE_LIMIT_KEY)

        actual_words = calculate_word_count(summary)
        logger.info(
            "OpenAI summarization successful: %d words, %d tokens, %dms",
            actual_words, tokens.total, latency,
        )
        return SummarizeResult(
            summary=summary,
            confidence=CONFIDENCE,
            model_version=completion.model or self._model,
            provider=self.name,
            tokens_used=tokens,
            target_length=target_words,
            actual_length=actual_words,
        )

    async def test_connection(self) -> HealthCheckResult:
        if not self.is_available():
            return HealthCheckResult(success=False, error="OpenAI API key not configured")

        t0 = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._get_client().chat.completions.create(
                    model=self._model,
                    messages=[{"role": "user", "content": 'Respond with "ok"'}],
                    max_tokens=10,
                ),
                HEALTH_CHECK_TIMEOUT_S,
            )
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
            metadata={
                "model": response.model,
                "tokens_used": response.usage.total_tokens if response.usage else 0,
            },
        )
