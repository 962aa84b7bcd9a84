# tests/unit/llm/test_unit_retry.py
"""Tests for llm/retry.py."""

from __future__ import annotations

import pytest

from budgetdigest.llm.errors import AIProviderError, map_provider_exception
from budgetdigest.llm.retry import RetryPolicy, compute_delay, with_retry


def _mapper(provider: str = "OpenAI"):
    return lambda e: map_provider_exception(e, provider, 30_000)


class Flaky:
    def __init__(self, failures: list[Exception], result: str = "done") -> None:
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


class TestComputeDelay:
    def test_exponential(self):
        policy = RetryPolicy(max_retries=3, base_delay_s=1.0)
        assert [compute_delay(policy, a) for a in range(3)] == [1.0, 2.0, 4.0]


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_retries_retryable_errors(self, sleep_recorder):
        fn = Flaky([AIProviderError.connection_error("OpenAI")] * 2)
        result = await with_retry(
            fn,
            provider="OpenAI",
            policy=RetryPolicy(max_retries=2),
            map_error=_mapper(),
            sleep=sleep_recorder,
        )
        assert result == "done"
        assert fn.calls == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self, sleep_recorder, auth_error):
        fn = Flaky([auth_error])
        with pytest.raises(AIProviderError) as exc_info:
            await with_retry(
                fn,
                provider="OpenAI",
                policy=RetryPolicy(max_retries=5),
                map_error=_mapper(),
                sleep=sleep_recorder,
            )
        assert exc_info.value is auth_error
        assert fn.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_raises_mapped_error(self, sleep_recorder):
        fn = Flaky([TimeoutError("read timed out")] * 3)
        with pytest.raises(AIProviderError) as exc_info:
            await with_retry(
                fn,
                provider="HuggingFace",
                policy=RetryPolicy(max_retries=2),
                map_error=_mapper("HuggingFace"),
                sleep=sleep_recorder,
            )
        assert exc_info.value.error_type == "timeout"
        assert exc_info.value.provider == "HuggingFace"
        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert fn.calls == 3
