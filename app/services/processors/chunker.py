"""
Transcript Chunking

Splits a long transcript into chunks that fit the summarization model's
input budget.

Strategy:
---------
1. Sentence boundaries are after `.`, `!` or `?` followed by whitespace
2. Sentences are accumulated greedily into the running chunk
3. When the next sentence would push the chunk past `max_chunk_chars`,
   the running chunk is emitted and the sentence starts a new one

Each chunk is an exact slice of the input (from the start of its first
sentence to the end of its last), so the only text between consecutive
chunks is the whitespace that separated them. A single sentence longer than
the limit becomes its own oversized chunk; sentences are never split.

Configuration from settings:
- SUMMARY_CHUNK_SIZE_CHARS: 3000 (default)
"""

import re
from typing import Iterator, Optional

from app.core.config import settings

SENTENCE_BOUNDARY = re.compile(r"[.!?]\s+")


class TranscriptChunker:
    """
    Sentence-aware, character-bounded chunker.

    Usage:
    ------
    chunker = TranscriptChunker(max_chunk_chars=3000)
    chunks = chunker.split(transcript)
    """

    def __init__(self, max_chunk_chars: Optional[int] = None):
        self.max_chunk_chars = max_chunk_chars or settings.SUMMARY_CHUNK_SIZE_CHARS
        if self.max_chunk_chars <= 0:
            raise ValueError("max_chunk_chars must be positive")

    def split(self, text: str) -> list[str]:
        """
        Split text into ordered chunks.

        Returns an empty list for empty or whitespace-only input.
        """
        chunks: list[str] = []
        chunk_start: Optional[int] = None
        chunk_end = 0

        for start, end in self.sentence_spans(text):
            if chunk_start is None:
                chunk_start, chunk_end = start, end
            elif end - chunk_start > self.max_chunk_chars:
                chunks.append(text[chunk_start:chunk_end])
                chunk_start, chunk_end = start, end
            else:
                chunk_end = end

        if chunk_start is not None:
            chunks.append(text[chunk_start:chunk_end])

        return chunks

    @staticmethod
    def sentence_spans(text: str) -> Iterator[tuple[int, int]]:
        """
        Yield (start, end) offsets of each sentence, excluding the
        whitespace around it.
        """
        if not text:
            return

        stripped = text.strip()
        if not stripped:
            return

        # Offsets of the non-whitespace region
        begin = len(text) - len(text.lstrip())
        finish = begin + len(stripped)

        cursor = begin
        for match in SENTENCE_BOUNDARY.finditer(text, begin, finish):
            yield cursor, match.start() + 1
            cursor = match.end()

        if cursor < finish:
            yield cursor, finish
