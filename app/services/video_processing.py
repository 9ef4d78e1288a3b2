"""
Video processing pipeline.

`VideoProcessingService.process(url, user_id)`:

1. Extract the video id (and optional channel id) from the URL
2. Find-or-create the Channel, then the Content keyed by video id
3. Fetch the transcript (with retries) if the Content has none yet, and
   backfill title / channel name from video metadata
4. Reuse the existing short Summary if there is one
5. Otherwise summarize, store the Summary, find-or-create Tags and link them
6. Append a history row for the user
7. Return the Summary with its Content, Channel and tag names

The expensive work (transcript fetch, model calls) happens at most once
per video no matter how many users ask for it; every call still gets its
own history row.

`refresh(video_id, user_id)` re-runs steps 3-6 unconditionally: fresh
transcript, regenerated summary written over the existing short Summary,
tags re-linked.

Failures are raised as AppErrors. Rows written before the failure
(Channel, Content without transcript) stay in place for the next attempt.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError, ErrorCode, InvalidURL, NotFound
from app.core.logging import get_logger
from app.core.retry import RetryOptions, with_retry
from app.models import (
    ANONYMOUS_CHANNEL_ID,
    UNKNOWN_CHANNEL_NAME,
    Channel,
    Content,
    Summary,
    SummaryType,
    UserSummaryHistory,
)
from app.services.llm import get_llm_client
from app.services.record_store import RecordStore
from app.services.summarizer import Summarizer, SummaryResult
from app.services.transcript_cache import CachedTranscriptService, get_transcript_cache
from app.services.transcript_service import get_transcript_service
from app.services.youtube import (
    YouTubeService,
    extract_video_info,
    get_youtube_service,
    validate_video_id,
)

logger = get_logger(__name__)


@dataclass
class SummaryRecord:
    """A short summary together with everything needed to display it."""

    summary: Summary
    content: Content
    channel: Channel
    tags: List[str] = field(default_factory=list)
    detailed_summary: Optional[Summary] = None
    generated: bool = False  # True when this call produced the summary


@dataclass
class HistoryItem:
    entry: UserSummaryHistory
    tags: List[str] = field(default_factory=list)


class VideoProcessingService:
    """
    Orchestrates extraction, transcript fetch, summarization and persistence.

    Example:
        >>> service = VideoProcessingService(store, transcripts, summarizer, youtube)
        >>> record = await service.process("https://youtu.be/dQw4w9WgXcQ", user_id="u1")
        >>> record.summary.summary
    """

    def __init__(
        self,
        store: RecordStore,
        transcripts: CachedTranscriptService,
        summarizer: Summarizer,
        youtube: Optional[YouTubeService] = None,
        retry_options: Optional[RetryOptions] = None,
    ):
        self.store = store
        self.transcripts = transcripts
        self.summarizer = summarizer
        self.youtube = youtube
        self.retry_options = retry_options or RetryOptions.from_settings("fetch_transcript")

    # ========================================
    # Public operations
    # ========================================

    async def process(self, url: str, user_id: str) -> SummaryRecord:
        """
        Summary for the video at `url`, generating it on first request.

        Raises:
            InvalidURL: not a recognized YouTube video URL
            NotFound: the video has no transcript
            AppError: rate limits, upstream or generation failures, storage errors
        """
        info = extract_video_info(url)

        async with self._pipeline("process", info.video_id, user_id):
            channel = await self.store.find_or_create_channel(info.channel_id or ANONYMOUS_CHANNEL_ID)
            content = await self.store.find_or_create_content(info.video_id, url, channel.id)

            if not content.title:
                content = await self._backfill_metadata(content, url)

            if not content.has_transcript:
                content = await self._store_transcript(content, force=False)

            summary = await self.store.find_summary(content.id, SummaryType.SHORT)
            generated = False

            if summary is not None:
                logger.info("summary_reused", video_id=content.id, summary_id=str(summary.id))
            else:
                result = await self.summarizer.summarize(content.transcript)
                summary, generated = await self.store.create_summary(content.id, result.summary, SummaryType.SHORT)
                if generated:
                    await self._store_tags(content.id, result.tags, replace=False)
                    await self._store_detailed(content.id, result)
                else:
                    # a concurrent request stored its summary and tags first
                    logger.info("summary_race_lost", video_id=content.id, summary_id=str(summary.id))

            await self.store.create_user_summary_history(user_id, content.id, summary.id)
            return await self._build_record(content.id, summary, generated)

    async def refresh(self, video_id: str, user_id: str) -> SummaryRecord:
        """
        Regenerate transcript, summary and tags of a known video.

        Raises:
            InvalidURL: malformed video id
            NotFound: the video was never processed, or has no transcript
        """
        if not validate_video_id(video_id):
            raise InvalidURL("Invalid YouTube video ID format")

        async with self._pipeline("refresh", video_id, user_id):
            content = await self.store.find_content_by_id(video_id)
            if content is None:
                raise NotFound("Video not found")

            content = await self._store_transcript(content, force=True)

            result = await self.summarizer.summarize(content.transcript)
            summary = await self.store.upsert_summary(content.id, result.summary, SummaryType.SHORT)
            await self._store_tags(content.id, result.tags, replace=True)
            await self._store_detailed(content.id, result)

            await self.store.create_user_summary_history(user_id, content.id, summary.id)
            return await self._build_record(content.id, summary, generated=True)

    async def get_history(self, user_id: str, limit: int = 100) -> List[HistoryItem]:
        """The user's summary history, newest first."""
        entries = await self.store.get_user_summary_history(user_id, limit=limit)
        tags = await self.store.get_tags_for_contents(entry.content_id for entry in entries)
        return [
            HistoryItem(entry=entry, tags=[tag.name for tag in tags.get(entry.content_id, [])])
            for entry in entries
        ]

    async def update_detailed_summary(self, video_id: str, text: str) -> SummaryRecord:
        """
        Store a detailed summary supplied by the caller.

        Raises:
            NotFound: the video has no short summary yet
        """
        async with self._pipeline("update_detailed_summary", video_id):
            summary = await self._require_short_summary(video_id)
            await self.store.upsert_summary(video_id, text, SummaryType.DETAILED)
            return await self._build_record(video_id, summary)

    async def generate_detailed_summary(self, video_id: str) -> SummaryRecord:
        """
        Generate and store the detailed summary from the stored transcript.

        Raises:
            NotFound: the video has no short summary or no transcript
            GenerationFailed: the model calls failed
        """
        async with self._pipeline("generate_detailed_summary", video_id):
            summary = await self._require_short_summary(video_id)
            content = await self.store.find_content_by_id(video_id)
            if content is None or not content.has_transcript:
                raise NotFound("No transcript stored for this video")

            text = await self.summarizer.generate_detailed_summary(content.transcript)
            await self.store.upsert_summary(video_id, text, SummaryType.DETAILED)
            return await self._build_record(video_id, summary, generated=True)

    # ========================================
    # Steps
    # ========================================

    async def _store_transcript(self, content: Content, force: bool) -> Content:
        """Fetch the transcript (retrying transient failures) and save it."""
        transcript = await with_retry(
            lambda: self.transcripts.fetch(content.id, force=force),
            self.retry_options,
        )
        return await self.store.update_content(content.id, transcript=transcript)

    async def _backfill_metadata(self, content: Content, url: str) -> Content:
        """Fill in title and channel name. Metadata problems are never fatal."""
        if self.youtube is None:
            return await self.store.update_content(content.id, title=f"YouTube Video {content.id}")

        metadata = await self.youtube.get_video_metadata(content.id, url)

        values = {"title": metadata.title[:500]}
        if metadata.published_at is not None:
            values["published_at"] = metadata.published_at
        if metadata.duration_seconds > 0:
            values["duration_seconds"] = metadata.duration_seconds
        content = await self.store.update_content(content.id, **values)

        channel = content.channel
        if (
            channel.id != ANONYMOUS_CHANNEL_ID
            and channel.name == UNKNOWN_CHANNEL_NAME
            and metadata.channel_title
        ):
            await self.store.update_channel(
                channel.id,
                name=metadata.channel_title[:255],
                url=channel.url or metadata.channel_url,
            )
            content = await self.store.find_content_by_id(content.id)

        return content

    async def _store_tags(self, content_id: str, names: List[str], replace: bool) -> None:
        tags = await self.store.find_or_create_tags(names)
        tag_ids = [tag.id for tag in tags]
        if replace:
            await self.store.replace_content_tags(content_id, tag_ids)
        else:
            await self.store.add_content_tags(content_id, tag_ids)

    async def _store_detailed(self, content_id: str, result: SummaryResult) -> None:
        if result.detailed_summary:
            await self.store.upsert_summary(content_id, result.detailed_summary, SummaryType.DETAILED)

    async def _require_short_summary(self, video_id: str) -> Summary:
        if not validate_video_id(video_id):
            raise InvalidURL("Invalid YouTube video ID format")
        summary = await self.store.find_summary(video_id, SummaryType.SHORT)
        if summary is None:
            raise NotFound("Summary not found")
        return summary

    async def _build_record(self, content_id: str, summary: Summary, generated: bool = False) -> SummaryRecord:
        content = await self.store.find_content_by_id(content_id)
        tags = await self.store.get_content_tags(content_id)
        detailed = await self.store.find_summary(content_id, SummaryType.DETAILED)
        return SummaryRecord(
            summary=summary,
            content=content,
            channel=content.channel,
            tags=[tag.name for tag in tags],
            detailed_summary=detailed,
            generated=generated,
        )

    @asynccontextmanager
    async def _pipeline(
        self,
        operation: str,
        video_id: str,
        user_id: Optional[str] = None,
    ) -> AsyncIterator[None]:
        """Log start/finish and turn unexpected exceptions into AppErrors."""
        log = logger.bind(operation=operation, video_id=video_id, user_id=user_id)
        log.info("video_processing_started")
        try:
            yield
        except AppError as e:
            log.warning(
                "video_processing_failed",
                code=e.code,
                status_code=e.status_code,
                error=e.message,
            )
            raise
        except Exception as e:
            log.exception("video_processing_crashed", error_type=type(e).__name__)
            raise AppError(
                "Failed to process video",
                code=ErrorCode.VIDEO_PROCESSING_FAILED,
                status_code=500,
            ) from e
        log.info("video_processing_completed")


async def create_video_processing_service(session: AsyncSession) -> VideoProcessingService:
    """Pipeline wired from settings onto `session` (API requests and Celery tasks)."""
    transcripts = CachedTranscriptService(get_transcript_service(), await get_transcript_cache())
    return VideoProcessingService(
        store=RecordStore(session),
        transcripts=transcripts,
        summarizer=Summarizer(get_llm_client()),
        youtube=get_youtube_service(),
    )
