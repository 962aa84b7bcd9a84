# src/chunking/boundary_chunker.py
"""Sentence-boundary chunking with overlap.

Chunk size and overlap are expressed in approximate tokens (characters /
chars_per_token). Each cut is moved back to the nearest sentence end within
a bounded window, then to the nearest whitespace, then left as is.
"""

from __future__ import annotations

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import SummarizationChunk
from budgetdigest.llm.models import estimate_token_count

SENTENCE_DELIMITERS = (". ", ".\n", "! ", "!\n", "? ", "?\n")


class BoundaryChunker:
    """Split long text into overlapping, sentence-aligned chunks."""

    def __init__(
        self,
        chunk_size_tokens: int = 3000,
        overlap_tokens: int = 300,
        chars_per_token: int = 4,
        search_window: int = 200,
    ) -> None:
        if overlap_tokens >= chunk_size_tokens:
            raise ValueError("overlap_tokens must be < chunk_size_tokens")
        self.chunk_size_tokens = chunk_size_tokens
        self.overlap_tokens = overlap_tokens
        self.chars_per_token = chars_per_token
        self.search_window = search_window

    @classmethod
    def from_settings(cls, settings: Settings) -> BoundaryChunker:
        return cls(
            chunk_size_tokens=settings.chunk_size_tokens,
            overlap_tokens=settings.chunk_overlap_tokens,
            chars_per_token=settings.chars_per_token,
            search_window=settings.boundary_search_window,
        )

    @property
    def chunk_size_chars(self) -> int:
        return self.chunk_size_tokens * self.chars_per_token

    @property
    def overlap_chars(self) -> int:
        return self.overlap_tokens * self.chars_per_token

    def estimate_tokens(self, text: str) -> int:
        return estimate_token_count(text, self.chars_per_token)

    def find_sentence_boundary(
        self, text: str, target: int, backward: bool = True, floor: int = 0
    ) -> int:
        """Position just after the nearest sentence end around target.

        Searches at most search_window characters (never below floor when
        searching backward). Falls back to the nearest whitespace, then to
        target itself.
        """
        if backward:
            positions = range(target, max(floor, target - self.search_window) - 1, -1)
        else:
            positions = range(target, min(len(text), target + self.search_window))

        for i in positions:
            for delimiter in SENTENCE_DELIMITERS:
                if text.startswith(delimiter, i):
                    return i + len(delimiter)
        for i in positions:
            if i < len(text) and text[i].isspace():
                return i + 1
        return target

    def split_by_boundary(self, text: str) -> list[SummarizationChunk]:
        """Walk the text with a strictly advancing cursor, emitting trimmed chunks."""
        chunks: list[SummarizationChunk] = []
        length = len(text)
        position = 0
        index = 0

        while position < length:
            end = min(position + self.chunk_size_chars, length)
            if end < length:
                end = self.find_sentence_boundary(text, end, floor=position + 1)

            chunk_text = text[position:end].strip()
            if chunk_text:
                chunks.append(
                    SummarizationChunk(
                        text=chunk_text,
                        index=index,
                        start_pos=position,
                        end_pos=end,
                        token_count=self.estimate_tokens(chunk_text),
                    )
                )
                index += 1

            if end >= length:
                break

            position = max(position + 1, end - self.overlap_chars)

        return chunks
