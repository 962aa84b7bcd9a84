# src/llm/providers/extractive_provider.py
"""Local extractive summarizer (last-resort fallback).

No network dependency, always available. Scores sentences by position,
length, domain keywords, numbers and acronyms, picks the best ones up to
the word budget and restores document order.
"""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass

from budgetdigest.llm.base_provider import BaseAIProvider
from budgetdigest.llm.models import (
    HealthCheckResult,
    ProviderType,
    SummarizeOptions,
    SummarizeResult,
    calculate_word_count,
)
from budgetdigest.llm.summary_length import calculate_summary_length

logger = logging.getLogger(__name__)

MODEL_VERSION = "extractive-v1"
CONFIDENCE = 0.3
DEFAULT_MIN_WORDS = 200
DEFAULT_MAX_WORDS = 600
MIN_SENTENCE_CHARS = 10
NEWLINE_FALLBACK_LINES = 10

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")
_NUMBER_RE = re.compile(r"\d+")
_ACRONYM_RE = re.compile(r"\b[A-Z]{2,}\b")
_KEYWORD_GROUPS = [
    re.compile(r"\b(budget|allocation|million|billion|ksh|funding)\b", re.I),
    re.compile(r"\b(key|important|significant|critical|priority)\b", re.I),
    re.compile(r"\b(objective|goal|target|aim)\b", re.I),
    re.compile(r"\b(total|summary|overall|aggregate)\b", re.I),
    re.compile(r"\b(increase|decrease|growth|reduction)\b", re.I),
    re.compile(r"\b(recommend|propose|suggest)\b", re.I),
    re.compile(r"\b(conclusion|finding|result)\b", re.I),
]


@dataclass
class _ScoredSentence:
    sentence: str
    score: float
    index: int


def score_sentence(sentence: str, index: int, total: int) -> float:
    """Importance score for one sentence at position index of total."""
    score = 0.0

    position = index / total if total else 0.0
    if position < 0.2:
        score += 2.0
    elif position > 0.8:
        score += 1.5
    elif 0.4 <= position <= 0.6:
        score += 1.0

    words = len(sentence.split())
    if 10 <= words <= 40:
        score += 1.0
    elif words > 40:
        score += 0.5

    score += 0.5 * sum(1 for pattern in _KEYWORD_GROUPS if pattern.search(sentence))

    numbers = len(_NUMBER_RE.findall(sentence))
    score += 0.5 * min(numbers, 3)

    if _ACRONYM_RE.search(sentence):
        score += 0.5

    return score


def extract_sentences(text: str, target_words: int) -> list[str]:
    """Select the highest-scoring sentences within the word budget, in document order."""
    raw = _SENTENCE_RE.findall(text)
    if not raw:
        lines = [line.strip() for line in text.split("\n")]
        return [line for line in lines if len(line) > MIN_SENTENCE_CHARS][
            :NEWLINE_FALLBACK_LINES
        ]

    sentences = [s.strip() for s in raw]
    sentences = [s for s in sentences if len(s) >= MIN_SENTENCE_CHARS]
    scored = [
        _ScoredSentence(s, score_sentence(s, i, len(sentences)), i)
        for i, s in enumerate(sentences)
    ]
    # Stable sort keeps earlier sentences first on ties.
    scored.sort(key=lambda item: item.score, reverse=True)

    selected: list[_ScoredSentence] = []
    word_count = 0
    for item in scored:
        words = len(item.sentence.split())
        if word_count + words <= target_words * 1.2:
            selected.append(item)
            word_count += words
        if word_count >= target_words * 0.9:
            break

    selected.sort(key=lambda item: item.index)
    return [item.sentence for item in selected]


class ExtractiveProvider(BaseAIProvider):
    @property
    def name(self) -> str:
        return "Extractive"

    @property
    def provider_type(self) -> ProviderType:
        return "extractive"

    def is_available(self) -> bool:
        return True

    async def summarize(
        self, text: str, options: SummarizeOptions | None = None
    ) -> SummarizeResult:
        options = options or SummarizeOptions()
        if options.dynamic_length and not options.has_explicit_lengths:
            target_words = calculate_summary_length(
                len(text), options.length_percentage
            ).target_length
        else:
            min_words = options.min_length or DEFAULT_MIN_WORDS
            max_words = options.max_length or DEFAULT_MAX_WORDS
            target_words = math.ceil((min_words + max_words) / 2)

        t0 = time.monotonic()
        summary = " ".join(extract_sentences(text, target_words))
        actual_words = calculate_word_count(summary)
        logger.info(
            "Extractive summary created: %d words (target %d), %dms",
            actual_words, target_words, int((time.monotonic() - t0) * 1000),
        )
        return SummarizeResult(
            summary=summary,
            confidence=CONFIDENCE,
            model_version=MODEL_VERSION,
            provider=self.name,
            target_length=target_words,
            actual_length=actual_words,
        )

    async def test_connection(self) -> HealthCheckResult:
        return HealthCheckResult(
            success=True,
            latency_ms=0,
            metadata={"type": "local", "version": MODEL_VERSION},
        )
