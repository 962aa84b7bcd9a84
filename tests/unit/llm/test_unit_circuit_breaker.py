# tests/unit/llm/test_unit_circuit_breaker.py
"""Tests for llm/circuit_breaker.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from budgetdigest.llm.circuit_breaker import CircuitBreaker
from budgetdigest.llm.errors import AIProviderError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("OpenAI", threshold=3, cooldown_s=60, clock=clock)


async def _boom():
    raise RuntimeError("upstream down")


class TestCircuitBreaker:
    def test_starts_closed(self, breaker):
        assert breaker.is_open() is False
        assert breaker.failure_count == 0

    def test_opens_at_threshold(self, breaker):
        breaker.record_failure()
        breaker.record_failure()
        assert not breaker.is_open()
        breaker.record_failure()
        assert breaker.is_open()

    def test_closes_after_cooldown(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        clock.now += 59
        assert breaker.is_open()
        clock.now += 1
        assert breaker.is_open() is False
        assert breaker.failure_count == 0

    def test_success_resets(self, breaker):
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert not breaker.is_open()
        assert breaker.failure_count == 1

    def test_status(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        status = breaker.status()
        assert status.is_open is True
        assert status.open_until == clock.now + 60
        assert status.threshold == 3

    @pytest.mark.asyncio
    async def test_call_records_failures(self, breaker):
        for _ in range(3):
            with pytest.raises(RuntimeError):
                await breaker.call(_boom)
        assert breaker.is_open()

    @pytest.mark.asyncio
    async def test_open_breaker_short_circuits(self, breaker):
        for _ in range(3):
            breaker.record_failure()
        fn = AsyncMock(return_value="never")
        with pytest.raises(AIProviderError) as exc_info:
            await breaker.call(fn)
        assert exc_info.value.error_type == "circuit_open"
        assert exc_info.value.retryable is False
        fn.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejection_carries_open_until(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure()
        clock.now += 15
        before = datetime.now(timezone.utc)
        with pytest.raises(AIProviderError) as exc_info:
            await breaker.call(AsyncMock())
        open_until = datetime.fromisoformat(exc_info.value.context["open_until"])
        assert before + timedelta(seconds=44) < open_until
        assert open_until <= datetime.now(timezone.utc) + timedelta(seconds=45)

    def test_open_until_none_while_closed(self, breaker):
        breaker.record_failure()
        assert breaker.open_until() is None

    @pytest.mark.asyncio
    async def test_call_success_closes(self, breaker):
        breaker.record_failure()
        fn = AsyncMock(return_value="ok")
        assert await breaker.call(fn, 1, key="v") == "ok"
        fn.assert_awaited_once_with(1, key="v")
        assert breaker.failure_count == 0
