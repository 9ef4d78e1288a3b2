"""
Transcript summarization (map / reduce) and tag extraction.

Flow:
-----
transcript
  → TranscriptChunker.split()                   (≤ chunk_size chars each)
  → one model call per chunk, run concurrently  (map)
  → if >1 chunk: join with blank lines, one more model call  (reduce)
  → tag model call on the final summary → parse_tags()

All variants (short / detailed summary, eager or on-demand, chunk size,
model) are the same algorithm driven by `SummarizerConfig`.

Every model call goes through app.core.retry.with_retry. A chunk or reduce
call that still fails, or that returns empty text, raises GenerationFailed
and aborts the whole summary; sibling chunk calls are cancelled. A failed tag call only degrades quality: the
fallback vocabulary is used instead.
"""

import asyncio
import re
from dataclasses import dataclass, field, replace
from typing import List, Optional

from app.core.config import settings
from app.core.errors import AppError, GenerationFailed, OperationFailed, root_cause
from app.core.logging import get_logger
from app.core.retry import RetryOptions, with_retry
from app.services.llm import ChatMessage, LLMClient
from app.services.processors.chunker import TranscriptChunker

logger = get_logger(__name__)

FALLBACK_TAGS = (
    "Tech",
    "Innovation",
    "Learning",
    "Development",
    "Business",
    "Strategy",
    "Growth",
    "Success",
    "Future",
    "Tips",
)
MAX_TAG_LENGTH = 25

_LIST_MARKER = re.compile(r"^\s*(?:[-*•#]+|\d+[.)])\s*")
_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class Prompts:
    """System prompt and user prompt prefix for one kind of model call."""

    system: str
    user_prefix: str

    def messages(self, body: str) -> List[ChatMessage]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": f"{self.user_prefix}\n\n{body}"},
        ]


SHORT_CHUNK_PROMPTS = Prompts(
    system="Summarize transcripts concisely, focusing on key points.",
    user_prefix="Summarize this transcript chunk:",
)
SHORT_REDUCE_PROMPTS = Prompts(
    system="Create concise summaries that capture main points in 150-200 words.",
    user_prefix="Create a final summary:",
)
DETAILED_CHUNK_PROMPTS = Prompts(
    system=(
        "Summarize transcripts thoroughly. Keep every key argument, example, "
        "number and conclusion."
    ),
    user_prefix="Write a detailed summary of this transcript chunk:",
)
DETAILED_REDUCE_PROMPTS = Prompts(
    system=(
        "Combine partial summaries into one coherent, well-structured detailed "
        "summary of at least 350 words."
    ),
    user_prefix="Create a detailed final summary:",
)


def tag_prompts(count: int) -> Prompts:
    return Prompts(
        system=(
            f"Generate {count} tags, 1-3 words each, under {MAX_TAG_LENGTH} chars. "
            "Return them comma-separated, without numbering or # symbols."
        ),
        user_prefix="Tags for:",
    )


@dataclass(frozen=True)
class SummarizerConfig:
    """Knobs for one summarization run."""

    chunk_size: int = 3000
    model: Optional[str] = None
    generate_detailed_eagerly: bool = False
    tag_count_target: int = 10
    temperature: float = 0.3
    chunk_max_tokens: int = 300
    final_max_tokens: int = 400
    detailed_max_tokens: int = 800
    tag_max_tokens: int = 100

    @classmethod
    def from_settings(cls) -> "SummarizerConfig":
        return cls(
            chunk_size=settings.SUMMARY_CHUNK_SIZE_CHARS,
            model=settings.ANTHROPIC_MODEL if settings.LLM_PROVIDER == "anthropic" else settings.OPENAI_MODEL,
            generate_detailed_eagerly=settings.GENERATE_DETAILED_EAGERLY,
            tag_count_target=settings.TAG_COUNT_TARGET,
            temperature=settings.SUMMARY_TEMPERATURE,
            chunk_max_tokens=settings.SUMMARY_CHUNK_MAX_TOKENS,
            final_max_tokens=settings.SUMMARY_FINAL_MAX_TOKENS,
            detailed_max_tokens=settings.SUMMARY_DETAILED_MAX_TOKENS,
            tag_max_tokens=settings.TAG_MAX_TOKENS,
        )


@dataclass
class SummaryResult:
    summary: str
    tags: List[str] = field(default_factory=list)
    chunk_count: int = 1
    detailed_summary: Optional[str] = None


def parse_tags(raw: str, target: int) -> List[str]:
    """
    Turn free-form model output into exactly `target` clean tags.

    Splits on commas and newlines, drops list markers and every
    non-alphanumeric character, discards tags that end up empty, one
    character long or longer than 25 characters, and deduplicates
    case-insensitively (first spelling wins). Short lists are padded from
    FALLBACK_TAGS.

    >>> parse_tags("1. Machine Learning\\n2. #AI, ai, Python!", 4)
    ['MachineLearning', 'AI', 'Python', 'Tech']
    """
    tags: List[str] = []
    seen = set()

    for piece in re.split(r"[,\n]", raw or ""):
        tag = _NON_ALPHANUMERIC.sub("", _LIST_MARKER.sub("", piece))
        if len(tag) <= 1 or len(tag) > MAX_TAG_LENGTH:
            continue
        key = tag.lower()
        if key in seen:
            continue
        seen.add(key)
        tags.append(tag)
        if len(tags) == target:
            return tags

    return pad_tags(tags, target)


def pad_tags(tags: List[str], target: int) -> List[str]:
    """Fill up to `target` with fallback tags not already present."""
    padded = list(tags)
    seen = {tag.lower() for tag in padded}
    for fallback in FALLBACK_TAGS:
        if len(padded) >= target:
            break
        if fallback.lower() not in seen:
            padded.append(fallback)
            seen.add(fallback.lower())
    return padded


class Summarizer:
    """
    Map/reduce summarizer.

    Example:
        >>> summarizer = Summarizer(get_llm_client())
        >>> result = await summarizer.summarize(transcript)
        >>> result.summary, result.tags
    """

    def __init__(
        self,
        llm: LLMClient,
        config: Optional[SummarizerConfig] = None,
        retry_options: Optional[RetryOptions] = None,
    ):
        self.llm = llm
        self.config = config or SummarizerConfig.from_settings()
        self.chunker = TranscriptChunker(self.config.chunk_size)
        self.retry_options = retry_options or RetryOptions.from_settings("llm_completion")

    async def summarize(self, transcript: str) -> SummaryResult:
        """
        Short summary plus tags (plus the detailed summary when
        `generate_detailed_eagerly` is set).

        Raises:
            GenerationFailed: a chunk or reduce call failed or came back empty
        """
        chunks = self._chunk(transcript)
        logger.info("summarization_started", chunks=len(chunks), chars=len(transcript))

        summary = await self._map_reduce(
            chunks,
            SHORT_CHUNK_PROMPTS,
            SHORT_REDUCE_PROMPTS,
            self.config.chunk_max_tokens,
            self.config.final_max_tokens,
        )
        tags = await self.generate_tags(summary)

        detailed = None
        if self.config.generate_detailed_eagerly:
            detailed = await self._detailed_from_chunks(chunks)

        logger.info("summarization_completed", chunks=len(chunks), tags=len(tags), detailed=detailed is not None)
        return SummaryResult(summary=summary, tags=tags, chunk_count=len(chunks), detailed_summary=detailed)

    async def generate_detailed_summary(self, transcript: str) -> str:
        """
        Detailed (350+ word) summary through the same map/reduce path.

        Raises:
            GenerationFailed: a chunk or reduce call failed or came back empty
        """
        return await self._detailed_from_chunks(self._chunk(transcript))

    async def generate_tags(self, summary: str) -> List[str]:
        """Tags for a summary. Never raises; falls back to FALLBACK_TAGS."""
        target = self.config.tag_count_target
        try:
            raw = await self._complete(
                tag_prompts(target).messages(summary),
                self.config.tag_max_tokens,
                "generate_tags",
            )
        except AppError as e:
            logger.warning("tag_generation_failed", error=str(e), error_type=type(root_cause(e)).__name__)
            return list(FALLBACK_TAGS[:target])
        return parse_tags(raw, target)

    # ========================================
    # Internals
    # ========================================

    def _chunk(self, transcript: str) -> List[str]:
        chunks = self.chunker.split(transcript)
        if not chunks:
            raise GenerationFailed("Transcript is empty, nothing to summarize")
        return chunks

    async def _detailed_from_chunks(self, chunks: List[str]) -> str:
        return await self._map_reduce(
            chunks,
            DETAILED_CHUNK_PROMPTS,
            DETAILED_REDUCE_PROMPTS,
            self.config.detailed_max_tokens,
            self.config.detailed_max_tokens,
        )

    async def _map_reduce(
        self,
        chunks: List[str],
        chunk_prompts: Prompts,
        reduce_prompts: Prompts,
        chunk_max_tokens: int,
        reduce_max_tokens: int,
    ) -> str:
        # the first failing chunk cancels the chunk calls still in flight
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self._generate(chunk_prompts.messages(chunk), chunk_max_tokens, "summarize_chunk")
                    )
                    for chunk in chunks
                ]
        except ExceptionGroup as eg:
            raise eg.exceptions[0]

        partials = [task.result() for task in tasks]

        if len(partials) == 1:
            return partials[0]

        combined = "\n\n".join(partials)
        return await self._generate(reduce_prompts.messages(combined), reduce_max_tokens, "reduce_summaries")

    async def _generate(self, messages: List[ChatMessage], max_tokens: int, operation: str) -> str:
        """Model call that must produce text."""
        try:
            text = await self._complete(messages, max_tokens, operation)
        except OperationFailed as e:
            raise GenerationFailed(
                f"Summary generation failed after {e.attempts} attempts",
                details={"operation": operation},
            ) from e
        except AppError as e:
            raise GenerationFailed(f"Summary generation failed: {e.message}", details={"operation": operation}) from e

        text = text.strip()
        if not text:
            raise GenerationFailed("Language model returned an empty summary", details={"operation": operation})
        return text

    async def _complete(self, messages: List[ChatMessage], max_tokens: int, operation: str) -> str:
        return await with_retry(
            lambda: self.llm.complete(
                messages,
                temperature=self.config.temperature,
                max_tokens=max_tokens,
                model=self.config.model,
            ),
            replace(self.retry_options, operation_name=operation),
        )
