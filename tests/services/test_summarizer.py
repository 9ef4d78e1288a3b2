"""
Tests for map/reduce summarization and tag extraction.
"""

import asyncio

import pytest

from app.core.errors import GenerationFailed, InvalidFormat, RateLimited, UpstreamUnavailable
from app.services.summarizer import (
    FALLBACK_TAGS,
    Summarizer,
    SummarizerConfig,
    pad_tags,
    parse_tags,
)
from tests.conftest import FakeLLM


# ========================================
# Tag parsing
# ========================================

class TestParseTags:

    def test_cleans_numbering_symbols_and_duplicates(self):
        raw = "1. Machine Learning\n2. #AI, ai, Python!"
        assert parse_tags(raw, 4) == ["MachineLearning", "AI", "Python", "Tech"]

    def test_drops_too_short_and_too_long(self):
        raw = "X, " + "A" * 26 + ", Data Science, Go"
        assert parse_tags(raw, 2) == ["DataScience", "Go"]

    def test_truncates_to_target(self):
        raw = ", ".join(f"Tag{i}" for i in range(12))
        tags = parse_tags(raw, 5)
        assert tags == ["Tag0", "Tag1", "Tag2", "Tag3", "Tag4"]

    def test_empty_output_is_all_fallbacks(self):
        assert parse_tags("", 5) == list(FALLBACK_TAGS[:5])

    def test_every_tag_is_clean(self):
        raw = "- Web Dev!!, * Cloud-Native, • DevOps & SRE, 3) Kubernetes"
        for tag in parse_tags(raw, 10):
            assert tag.isalnum()
            assert 2 <= len(tag) <= 25

    def test_padding_skips_existing_fallbacks(self):
        assert pad_tags(["tech", "Rust"], 4) == ["tech", "Rust", "Innovation", "Learning"]


# ========================================
# Summarizer
# ========================================

@pytest.fixture
def config() -> SummarizerConfig:
    return SummarizerConfig(chunk_size=40, model="fake-model", tag_count_target=5)


class TestSummarizer:

    @pytest.mark.asyncio
    async def test_single_chunk_has_no_reduce_step(self, fake_llm, fast_retry):
        summarizer = Summarizer(fake_llm, SummarizerConfig(tag_count_target=5), retry_options=fast_retry)

        result = await summarizer.summarize("A short transcript. Nothing else.")

        assert result.chunk_count == 1
        assert fake_llm.summary_calls == 1
        assert result.summary == "Summary number 1."
        assert result.tags == ["Music", "Pop", "Eighties", "Dance", "Classic"]
        assert result.detailed_summary is None

    @pytest.mark.asyncio
    async def test_multiple_chunks_are_reduced(self, fake_llm, fast_retry, config):
        summarizer = Summarizer(fake_llm, config, retry_options=fast_retry)
        transcript = " ".join(f"Sentence number {i} is right here." for i in range(6))

        result = await summarizer.summarize(transcript)

        assert result.chunk_count == 6
        # one call per chunk, one reduce call
        assert fake_llm.summary_calls == 7
        reduce_messages = fake_llm.calls[6]
        assert reduce_messages[1]["content"].startswith("Create a final summary:")
        assert "Summary number 1." in reduce_messages[1]["content"]

    @pytest.mark.asyncio
    async def test_partials_keep_chunk_order(self, fast_retry, config):
        class EchoLLM(FakeLLM):
            async def complete(self, messages, temperature, max_tokens, model=None):
                self.calls.append(messages)
                body = messages[1]["content"]
                if body.startswith("Summarize this transcript chunk:"):
                    return body.split("\n\n", 1)[1][:11]
                return body

        llm = EchoLLM()
        summarizer = Summarizer(llm, config, retry_options=fast_retry)
        transcript = "Chunk alpha is the first one. Chunk bravo is the second one."

        result = await summarizer.summarize(transcript)

        assert result.summary.index("Chunk alpha") < result.summary.index("Chunk bravo")

    @pytest.mark.asyncio
    async def test_failed_chunk_cancels_the_other_chunks(self, fast_retry, config):
        started, cancelled, finished = [], [], []
        never = asyncio.Event()

        class StallingLLM(FakeLLM):
            async def complete(self, messages, temperature, max_tokens, model=None):
                body = messages[1]["content"]
                if "Sentence number 1 " in body:
                    raise InvalidFormat("garbage")
                started.append(body)
                try:
                    await never.wait()
                except asyncio.CancelledError:
                    cancelled.append(body)
                    raise
                finished.append(body)
                return "late summary"

        summarizer = Summarizer(StallingLLM(), config, retry_options=fast_retry)
        transcript = " ".join(f"Sentence number {i} is right here." for i in range(5))

        with pytest.raises(GenerationFailed) as exc_info:
            await summarizer.summarize(transcript)

        assert isinstance(exc_info.value.__cause__, InvalidFormat)
        assert started
        assert sorted(cancelled) == sorted(started)
        assert finished == []

    @pytest.mark.asyncio
    async def test_model_and_temperature_are_passed(self, fast_retry):
        seen = {}

        class SpyLLM(FakeLLM):
            async def complete(self, messages, temperature, max_tokens, model=None):
                seen.update(temperature=temperature, model=model, max_tokens=max_tokens)
                return "ok summary"

        config = SummarizerConfig(model="gpt-test", temperature=0.1, final_max_tokens=123, chunk_max_tokens=123)
        await Summarizer(SpyLLM(), config, retry_options=fast_retry).generate_detailed_summary("Hi there.")

        assert seen["model"] == "gpt-test"
        assert seen["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_eager_detailed_summary(self, fake_llm, fast_retry):
        config = SummarizerConfig(tag_count_target=5, generate_detailed_eagerly=True)
        result = await Summarizer(fake_llm, config, retry_options=fast_retry).summarize("One. Two.")

        assert result.detailed_summary.startswith("Detailed summary")

    @pytest.mark.asyncio
    async def test_transient_model_errors_are_retried(self, fake_llm, fast_retry):
        failures = [RateLimited("busy")]

        class FlakyLLM(FakeLLM):
            async def complete(self, messages, temperature, max_tokens, model=None):
                if failures:
                    raise failures.pop()
                return await super().complete(messages, temperature, max_tokens, model)

        result = await Summarizer(FlakyLLM(), SummarizerConfig(), retry_options=fast_retry).summarize("Hello.")
        assert result.summary == "Summary number 1."

    @pytest.mark.asyncio
    async def test_persistent_failure_raises_generation_failed(self, fake_llm, fast_retry):
        fake_llm.fail_with = UpstreamUnavailable("down", upstream_status=503)

        with pytest.raises(GenerationFailed) as exc_info:
            await Summarizer(fake_llm, SummarizerConfig(), retry_options=fast_retry).summarize("Hello.")

        assert exc_info.value.status_code == 503
        assert len(fake_llm.calls) == fast_retry.max_attempts

    @pytest.mark.asyncio
    async def test_empty_model_output_fails(self, fast_retry):
        class SilentLLM(FakeLLM):
            async def complete(self, messages, temperature, max_tokens, model=None):
                return "   "

        with pytest.raises(GenerationFailed):
            await Summarizer(SilentLLM(), SummarizerConfig(), retry_options=fast_retry).summarize("Hello.")

    @pytest.mark.asyncio
    async def test_empty_transcript_fails(self, fake_llm, fast_retry):
        with pytest.raises(GenerationFailed):
            await Summarizer(fake_llm, SummarizerConfig(), retry_options=fast_retry).summarize("   ")
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_tag_failure_uses_fallback_tags(self, fast_retry):
        class TaglessLLM(FakeLLM):
            async def complete(self, messages, temperature, max_tokens, model=None):
                if messages[0]["content"].startswith("Generate"):
                    raise InvalidFormat("garbage")
                return "A summary."

        summarizer = Summarizer(TaglessLLM(), SummarizerConfig(tag_count_target=5), retry_options=fast_retry)
        result = await summarizer.summarize("Hello.")

        assert result.summary == "A summary."
        assert result.tags == list(FALLBACK_TAGS[:5])
