"""
Tests for sentence-aware transcript chunking.
"""

import re

import pytest

from app.services.processors.chunker import TranscriptChunker


def _strip_whitespace(text: str) -> str:
    return re.sub(r"\s+", "", text)


class TestTranscriptChunker:

    def test_short_text_is_one_chunk(self):
        chunker = TranscriptChunker(max_chunk_chars=100)
        assert chunker.split("One sentence. Another one!") == ["One sentence. Another one!"]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_input(self, text):
        assert TranscriptChunker(max_chunk_chars=100).split(text) == []

    def test_splits_on_sentence_boundaries(self):
        chunker = TranscriptChunker(max_chunk_chars=30)
        text = "First sentence here. Second sentence here. Third one?"

        chunks = chunker.split(text)

        assert chunks == ["First sentence here.", "Second sentence here.", "Third one?"]

    def test_greedy_packing(self):
        chunker = TranscriptChunker(max_chunk_chars=25)
        chunks = chunker.split("Aa. Bb. Cc. Dd. Ee. Ff. Gg. Hh.")
        assert chunks == ["Aa. Bb. Cc. Dd. Ee. Ff.", "Gg. Hh."]

    def test_chunks_respect_bound(self):
        sentence = "This sentence is exactly forty chars ok. "
        text = sentence * 50
        chunker = TranscriptChunker(max_chunk_chars=200)

        chunks = chunker.split(text)

        assert len(chunks) > 1
        assert all(len(chunk) <= 200 for chunk in chunks)

    def test_oversized_sentence_is_kept_whole(self):
        long_sentence = "word " * 40 + "end."
        chunker = TranscriptChunker(max_chunk_chars=50)

        chunks = chunker.split(f"Short. {long_sentence} Tail.")

        assert chunks[1] == long_sentence
        assert len(chunks[1]) > 50

    def test_concatenation_preserves_text(self):
        text = "  Hello there.  General Kenobi!\nYou are a bold one? Indeed  "
        chunks = TranscriptChunker(max_chunk_chars=20).split(text)
        assert _strip_whitespace("".join(chunks)) == _strip_whitespace(text)
        assert all(chunk in text for chunk in chunks)

    def test_text_without_punctuation(self):
        text = "no punctuation at all just words"
        assert TranscriptChunker(max_chunk_chars=5).split(text) == [text]

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            TranscriptChunker(max_chunk_chars=-1)
