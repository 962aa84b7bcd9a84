# src/translation/translator.py
"""Summary translation through OpenAI chat completions.

Domain-aware prompts keep figures and dates verbatim; the result carries a
heuristic confidence built from length ratio, over-similarity to the
source and target-language function words.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import (
    TranslationContext,
    TranslationDirection,
    TranslationErrorType,
    TranslationOutcome,
)
from budgetdigest.llm.errors import AIProviderError, map_provider_exception
from budgetdigest.llm.models import calculate_word_count
from budgetdigest.llm.prompts import build_translation_messages

logger = logging.getLogger(__name__)

PROVIDER = "openai"
TEMPERATURE = 0.3
MAX_OUTPUT_TOKENS = 4096
BASE_CONFIDENCE = 0.85
SWAHILI_MARKERS = ("ya", "na", "kwa", "wa", "za")

_AI_TO_TRANSLATION: dict[str, TranslationErrorType] = {
    "rate_limited": "rate_limited",
    "timeout": "timeout",
    "api_error": "api_error",
    "connection_error": "connection_error",
    "authentication_failed": "authentication_failed",
    "invalid_input": "invalid_text",
}


class TranslationError(Exception):
    """Classified translation failure."""

    def __init__(self, message: str, error_type: TranslationErrorType = "unknown") -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type


def classify_translation_error(error: BaseException) -> TranslationErrorType:
    if isinstance(error, TranslationError):
        return error.error_type
    if isinstance(error, AIProviderError):
        return _AI_TO_TRANSLATION.get(error.error_type, "unknown")
    lowered = str(error).lower()
    if "timeout" in lowered or "timed out" in lowered:
        return "timeout"
    if "rate limit" in lowered:
        return "rate_limited"
    if "api key" in lowered:
        return "authentication_failed"
    return "unknown"


def calculate_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity over lowercased words longer than 3 characters."""
    words1 = {w for w in text1.lower().split() if len(w) > 3}
    words2 = {w for w in text2.lower().split() if len(w) > 3}
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def calculate_confidence(
    source_text: str,
    translated_text: str,
    direction: TranslationDirection = "en-to-sw",
) -> float:
    """Heuristic translation quality in [0.5, 1.0]."""
    confidence = BASE_CONFIDENCE

    ratio = len(translated_text) / len(source_text) if source_text else 0.0
    if ratio < 0.5 or ratio > 2.5:
        confidence -= 0.1

    if calculate_similarity(source_text, translated_text) > 0.9:
        confidence -= 0.2

    if direction == "en-to-sw":
        lowered = translated_text.lower()
        has_markers = any(f" {w} " in lowered for w in SWAHILI_MARKERS)
        if not has_markers and len(translated_text) > 50:
            confidence -= 0.1

    return max(0.5, min(1.0, confidence))


class Translator:
    """Translate summaries between English and Swahili."""

    def __init__(self, settings: Settings, client: Any = None) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key
        self._model = settings.translation_model
        self._client = client

    def is_available(self) -> bool:
        return bool(self._api_key) or self._client is not None

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise TranslationError(
                    "OpenAI API key invalid or missing", "authentication_failed"
                )
            import openai

            self._client = openai.AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    def _validate(self, text: str) -> None:
        if not text or not text.strip():
            raise TranslationError("Text to translate cannot be empty", "empty_content")
        limit = self._settings.translation_max_chars
        if len(text) > limit:
            raise TranslationError(
                f"Text too long for translation. Maximum {limit:,} characters.",
                "invalid_text",
            )

    async def translate(
        self,
        text: str,
        direction: TranslationDirection | None = None,
        context_type: TranslationContext | None = None,
        timeout_ms: int | None = None,
    ) -> TranslationOutcome:
        """Translate ``text``.

        Raises:
            TranslationError: Classified failure (validation, timeout, API).
        """
        self._validate(text)
        direction = direction or self._settings.translation_direction
        context_type = context_type or self._settings.translation_context
        timeout_ms = timeout_ms or self._settings.translation_timeout_ms
        messages = build_translation_messages(text, direction, context_type)

        logger.info(
            "Translating %d chars (%s, %s context)", len(text), direction, context_type
        )
        t0 = time.monotonic()
        try:
            completion = await asyncio.wait_for(
                self._get_client().chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=TEMPERATURE,
                    max_tokens=min(math.ceil(len(text) * 2), MAX_OUTPUT_TOKENS),
                ),
                timeout_ms / 1000,
            )
        except TranslationError:
            raise
        except asyncio.TimeoutError as e:
            raise TranslationError(
                f"Translation timeout after {timeout_ms}ms. Text may be too long.",
                "timeout",
            ) from e
        except Exception as e:
            mapped = map_provider_exception(e, PROVIDER, timeout_ms)
            error_type = _AI_TO_TRANSLATION.get(mapped.error_type, "unknown")
            if error_type == "authentication_failed":
                message = "OpenAI API key invalid or missing"
            elif error_type == "rate_limited":
                message = "OpenAI rate limit exceeded. Please try again later."
            else:
                message = f"Translation failed: {e}"
            raise TranslationError(message, error_type) from e
        duration_ms = int((time.monotonic() - t0) * 1000)

        translated = (completion.choices[0].message.content or "").strip()
        if not translated:
            raise TranslationError("Translation returned empty result", "api_error")

        confidence = calculate_confidence(text, translated, direction)
        outcome = TranslationOutcome(
            translated_text=translated,
            confidence=confidence,
            source_char_count=len(text),
            output_char_count=len(translated),
            source_word_count=calculate_word_count(text),
            output_word_count=calculate_word_count(translated),
            model_version=completion.model or self._model,
            duration_ms=duration_ms,
            direction=direction,
        )
        logger.info(
            "Translation done in %dms: %d chars, %d words (confidence %.2f)",
            duration_ms, outcome.output_char_count, outcome.output_word_count, confidence,
        )
        return outcome
