# tests/unit/translation/test_unit_translator.py
"""Tests for translation/translator.py with a mocked OpenAI client."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from budgetdigest.config.settings import Settings
from budgetdigest.translation.translator import (
    TranslationError,
    Translator,
    calculate_confidence,
    calculate_similarity,
    classify_translation_error,
)

SWAHILI = (
    "Bajeti ya taifa inatenga fedha kwa elimu na afya, pamoja na barabara za "
    "kaunti kwa mwaka wa fedha."
)
ENGLISH = (
    "The national budget allocates funds to education and health, together with "
    "county roads for the fiscal year."
)


class StatusError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


def _client(content: str = SWAHILI, side_effect=None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=side_effect,
        return_value=SimpleNamespace(
            model="gpt-3.5-turbo-0125",
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        ),
    )
    return client


@pytest.fixture
def translator_settings():
    return Settings(_env_file=None, openai_api_key="sk-test")


class TestHeuristics:
    def test_similarity(self):
        assert calculate_similarity("budget health roads", "budget health roads") == 1.0
        assert calculate_similarity("the a of", "an it") == 0.0
        assert calculate_similarity("budget health", "budget roads") == pytest.approx(1 / 3)

    def test_good_translation(self):
        assert calculate_confidence(ENGLISH, SWAHILI) == pytest.approx(0.85)

    def test_untranslated_copy_penalised(self):
        # Copy of the source: similarity and missing markers both apply.
        assert calculate_confidence(ENGLISH, ENGLISH) == pytest.approx(0.55)

    def test_length_ratio_penalised(self):
        assert calculate_confidence(ENGLISH, "Bajeti ya taifa.") == pytest.approx(0.75)

    def test_floor(self):
        assert calculate_confidence("x" * 10, "x" * 10 + " " + "y" * 100) >= 0.5

    def test_markers_only_for_swahili_target(self):
        assert calculate_confidence(SWAHILI, ENGLISH, "sw-to-en") == pytest.approx(0.85)


class TestClassify:
    def test_translation_error_passthrough(self):
        assert classify_translation_error(TranslationError("x", "invalid_text")) == "invalid_text"

    def test_message_heuristics(self):
        assert classify_translation_error(RuntimeError("request timed out")) == "timeout"
        assert classify_translation_error(RuntimeError("Rate limit hit")) == "rate_limited"
        assert classify_translation_error(RuntimeError("odd")) == "unknown"


class TestTranslator:
    def test_availability(self, translator_settings):
        assert Translator(translator_settings).is_available()
        assert not Translator(Settings(_env_file=None)).is_available()
        assert Translator(Settings(_env_file=None), client=_client()).is_available()

    @pytest.mark.asyncio
    async def test_translate(self, translator_settings):
        client = _client()
        outcome = await Translator(translator_settings, client=client).translate(ENGLISH)
        assert outcome.translated_text == SWAHILI
        assert outcome.model_version == "gpt-3.5-turbo-0125"
        assert outcome.source_char_count == len(ENGLISH)
        assert outcome.output_word_count == len(SWAHILI.split())
        assert outcome.direction == "en-to-sw"

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == len(ENGLISH) * 2
        assert "Swahili" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_max_tokens_capped(self, translator_settings):
        client = _client()
        await Translator(translator_settings, client=client).translate("word " * 2000)
        assert client.chat.completions.create.await_args.kwargs["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_empty_input(self, translator_settings):
        with pytest.raises(TranslationError) as exc_info:
            await Translator(translator_settings, client=_client()).translate("   ")
        assert exc_info.value.error_type == "empty_content"
        assert exc_info.value.message == "Text to translate cannot be empty"

    @pytest.mark.asyncio
    async def test_too_long(self, translator_settings):
        with pytest.raises(TranslationError) as exc_info:
            await Translator(translator_settings, client=_client()).translate("a" * 50_001)
        assert exc_info.value.error_type == "invalid_text"
        assert "Maximum 50,000 characters" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self, translator_settings):
        async def hang(**kwargs):
            await asyncio.sleep(10)

        client = MagicMock()
        client.chat.completions.create = hang
        translator = Translator(translator_settings, client=client)
        with pytest.raises(TranslationError) as exc_info:
            await translator.translate(ENGLISH, timeout_ms=10)
        assert exc_info.value.error_type == "timeout"
        assert exc_info.value.message == "Translation timeout after 10ms. Text may be too long."

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,error_type,message",
        [
            (StatusError("bad key", 401), "authentication_failed", "OpenAI API key invalid or missing"),
            (StatusError("slow", 429), "rate_limited", "OpenAI rate limit exceeded. Please try again later."),
            (StatusError("upstream", 503), "api_error", "Translation failed: upstream"),
        ],
    )
    async def test_api_errors(self, translator_settings, error, error_type, message):
        translator = Translator(translator_settings, client=_client(side_effect=error))
        with pytest.raises(TranslationError) as exc_info:
            await translator.translate(ENGLISH)
        assert exc_info.value.error_type == error_type
        assert exc_info.value.message == message

    @pytest.mark.asyncio
    async def test_empty_result(self, translator_settings):
        translator = Translator(translator_settings, client=_client(content=""))
        with pytest.raises(TranslationError) as exc_info:
            await translator.translate(ENGLISH)
        assert exc_info.value.error_type == "api_error"
