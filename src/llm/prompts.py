# src/llm/prompts.py
"""Prompt templates for summarization and translation.

Templates live as .txt files under prompts/ and are filled with str.format.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from budgetdigest.llm.models import estimate_token_count

_PROMPT_DIR = Path(__file__).parent.parent / "prompts"

MESSAGE_OVERHEAD_TOKENS = 4

_LANGUAGE_NAMES = {"en": "English", "sw": "Swahili"}


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Load and cache a prompt template by file stem."""
    return (_PROMPT_DIR / f"{name}.txt").read_text(encoding="utf-8").strip()


def build_summarization_messages(
    text: str,
    min_words: int,
    max_words: int,
    chunk_index: int | None = None,
    total_chunks: int | None = None,
    is_multi_level: bool = False,
    language: str = "en",
) -> list[dict[str, str]]:
    """Chat messages for one summarization call.

    Combination prompt for multi-level passes, section prompt when chunk
    position is known, whole-document prompt otherwise.
    """
    if is_multi_level:
        user = load_prompt("summarize_combination").format(
            text=text, min_words=min_words, max_words=max_words
        )
    elif chunk_index is not None and total_chunks is not None:
        position_note = ""
        if total_chunks > 1:
            position_note = (
                f"\n\nNote: This is part {chunk_index + 1} of {total_chunks} "
                "from a larger document. Summarize this section comprehensively, "
                "as it will be combined with other sections later."
            )
        user = load_prompt("summarize_chunk").format(
            text=text,
            min_words=min_words,
            max_words=max_words,
            position_note=position_note,
        )
    else:
        user = load_prompt("summarize_single").format(
            text=text, min_words=min_words, max_words=max_words
        )
    if language != "en":
        user += f"\n\nWrite the summary in {_LANGUAGE_NAMES[language]}."
    return [
        {"role": "system", "content": load_prompt("summarization_system")},
        {"role": "user", "content": user},
    ]


def estimate_message_tokens(messages: list[dict[str, str]]) -> int:
    content = sum(estimate_token_count(m["content"]) for m in messages)
    return content + MESSAGE_OVERHEAD_TOKENS * len(messages)


def check_context_fit(
    messages: list[dict[str, str]], max_output_tokens: int, context_window: int
) -> tuple[bool, int]:
    """Return (fits, estimated_total_tokens) for prompt plus reserved output."""
    total = estimate_message_tokens(messages) + max_output_tokens
    return total <= context_window, total


def language_pair(direction: str) -> tuple[str, str]:
    """Map 'en-to-sw' style directions to (source, target) language names."""
    source, _, target = direction.partition("-to-")
    return _LANGUAGE_NAMES[source], _LANGUAGE_NAMES[target]


def build_translation_messages(
    text: str, direction: str, context_type: str = "budget"
) -> list[dict[str, str]]:
    source, target = language_pair(direction)
    template = "translation_budget" if context_type == "budget" else "translation_general"
    return [
        {
            "role": "system",
            "content": load_prompt(template).format(
                source_language=source, target_language=target
            ),
        },
        {
            "role": "user",
            "content": load_prompt("translation_user").format(
                target_language=target, text=text
            ),
        },
    ]
