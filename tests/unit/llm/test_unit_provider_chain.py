# tests/unit/llm/test_unit_provider_chain.py
"""Tests for llm/provider_chain.py: ordered fallback."""

from __future__ import annotations

import logging

import pytest

from budgetdigest.llm.errors import (
    AIProviderError,
    NoProvidersAvailableError,
    ProviderChainError,
)
from budgetdigest.llm.provider_chain import ProviderChain


class TestProviderChain:
    def test_filters_unavailable(self, fake_provider):
        chain = ProviderChain(
            [fake_provider("OpenAI", available=False), fake_provider("Extractive")]
        )
        assert chain.provider_names == ["Extractive"]

    def test_none_available(self, fake_provider):
        with pytest.raises(NoProvidersAvailableError):
            ProviderChain([fake_provider("OpenAI", available=False)])

    @pytest.mark.asyncio
    async def test_first_success_wins(self, fake_provider):
        primary, backup = fake_provider("OpenAI"), fake_provider("HuggingFace")
        result = await ProviderChain([primary, backup]).summarize("text")
        assert result.provider == "OpenAI"
        assert backup.calls == []

    @pytest.mark.asyncio
    async def test_falls_through_on_error(self, fake_provider, auth_error):
        primary = fake_provider("OpenAI", behavior=auth_error)
        backup = fake_provider("HuggingFace", confidence=0.75)
        result = await ProviderChain([primary, backup]).summarize("text")
        assert result.provider == "HuggingFace"
        assert result.confidence == 0.75
        assert len(primary.calls) == 1

    @pytest.mark.asyncio
    async def test_rate_limited_falls_through(self, fake_provider):
        primary = fake_provider("OpenAI", behavior=AIProviderError.rate_limited("OpenAI"))
        backup = fake_provider("Extractive", confidence=0.6)
        result = await ProviderChain([primary, backup]).summarize("text")
        assert result.provider == "Extractive"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,error_type",
        [
            (AIProviderError.connection_error("OpenAI"), "connection_error"),
            (AIProviderError.rate_limited("OpenAI"), "rate_limited"),
            (RuntimeError("boom"), "unknown"),
        ],
    )
    async def test_failure_logged_once_before_fallback(
        self, fake_provider, caplog, error, error_type
    ):
        primary = fake_provider("OpenAI", behavior=error)
        backup = fake_provider("Extractive", confidence=0.6)
        with caplog.at_level(logging.INFO, logger="budgetdigest.llm.provider_chain"):
            result = await ProviderChain([primary, backup]).summarize("text")

        assert result.provider == "Extractive"
        failures = [r for r in caplog.records if "OpenAI failed" in r.getMessage()]
        assert len(failures) == 1
        assert failures[0].levelno == logging.WARNING
        assert f"({error_type})" in failures[0].getMessage()

    @pytest.mark.asyncio
    async def test_all_fail_aggregates(self, fake_provider, auth_error):
        chain = ProviderChain(
            [
                fake_provider("OpenAI", behavior=auth_error),
                fake_provider("HuggingFace", behavior=RuntimeError("model loading")),
            ]
        )
        with pytest.raises(ProviderChainError) as exc_info:
            await chain.summarize("text")
        message = str(exc_info.value)
        assert message.startswith("All AI providers failed")
        assert "Authentication failed" in message
        assert "model loading" in message
        assert [name for name, _ in exc_info.value.errors] == ["OpenAI", "HuggingFace"]

    @pytest.mark.asyncio
    async def test_options_forwarded(self, fake_provider):
        from budgetdigest.llm.models import SummarizeOptions

        provider = fake_provider("OpenAI")
        options = SummarizeOptions(min_length=50, max_length=100)
        await ProviderChain([provider]).summarize("text", options)
        assert provider.calls[0][1] is options

    @pytest.mark.asyncio
    async def test_health(self, fake_provider):
        chain = ProviderChain(
            [
                fake_provider("OpenAI"),
                fake_provider("HuggingFace", behavior=RuntimeError("down")),
            ]
        )
        health = await chain.test_all_providers()
        assert [h.healthy for h in health] == [True, False]
        assert health[1].error == "down"

    def test_circuit_status_skips_providers_without_breaker(self, fake_provider):
        assert ProviderChain([fake_provider("Extractive")]).circuit_status() == {}
