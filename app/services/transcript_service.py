"""
YouTube transcript fetching.

Two providers return the same segment shape, `{text, offset, duration}`:

1. RapidAPITranscriptProvider (default): the youtube-transcript3 RapidAPI
   endpoint, called with httpx
2. YouTubeTranscriptProvider: youtube-transcript-api, scraping captions
   directly (manual transcripts in preferred languages first, then any
   available transcript)

`TranscriptService.fetch` sorts segments by offset, joins their text and
cleans the result. Provider failures are raised as typed application errors:

- NotFound: no transcript for this video (404, or an empty segment list)
- RateLimited: provider throttling (429)
- UpstreamUnavailable: any other non-OK status or a network fault
- InvalidFormat: OK response whose payload is not a segment list

Nothing here retries; callers wrap `fetch` in app.core.retry.with_retry.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional, Protocol

import httpx
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    RequestBlocked,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from app.core.config import settings
from app.core.errors import InvalidFormat, NotFound, RateLimited, UpstreamUnavailable
from app.core.logging import get_logger

logger = get_logger(__name__)

TranscriptSegment = Dict[str, Any]


class TranscriptProvider(Protocol):
    """Anything that can return raw transcript segments for a video id."""

    name: str

    async def fetch_segments(self, video_id: str) -> List[TranscriptSegment]:
        ...


# ========================================
# Providers
# ========================================

class RapidAPITranscriptProvider:
    """
    youtube-transcript3 on RapidAPI.

    GET {base_url}/api/transcript?videoId=ID
    → {"transcript": [{"text": "...", "offset": "0.5", "duration": 1.2}, ...]}
    """

    name = "rapidapi"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        api_host: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        self._http_client = http_client
        self.base_url = (base_url or settings.TRANSCRIPT_API_URL).rstrip("/")
        self.api_host = api_host or settings.TRANSCRIPT_API_HOST
        self.api_key = api_key if api_key is not None else settings.TRANSCRIPT_API_KEY

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "x-rapidapi-host": self.api_host,
            "x-rapidapi-key": self.api_key or "",
        }

    async def fetch_segments(self, video_id: str) -> List[TranscriptSegment]:
        url = f"{self.base_url}/api/transcript"
        params = {"videoId": video_id}

        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, params=params, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS) as client:
                    response = await client.get(url, params=params, headers=self.headers)
        except httpx.TransportError as e:
            logger.warning("transcript_provider_unreachable", video_id=video_id, error=str(e))
            raise UpstreamUnavailable(f"Transcript service unreachable: {e}") from e

        if not response.is_success:
            self._raise_for_status(video_id, response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidFormat("Invalid transcript format received") from e

        segments = data.get("transcript") if isinstance(data, dict) else None
        if not isinstance(segments, list):
            raise InvalidFormat("Invalid transcript format received")

        return segments

    @staticmethod
    def _raise_for_status(video_id: str, response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("message") if isinstance(body, dict) else None

        logger.error(
            "transcript_api_error",
            video_id=video_id,
            status=response.status_code,
            provider_message=message,
        )

        if response.status_code == 404:
            raise NotFound("No transcript available for this video")
        if response.status_code == 429:
            raise RateLimited("Rate limit exceeded for transcript service")
        raise UpstreamUnavailable(
            message or "Failed to fetch transcript",
            upstream_status=response.status_code,
        )


class YouTubeTranscriptProvider:
    """
    youtube-transcript-api provider.

    Tries the preferred languages first and falls back to whatever
    transcript the video has. The library is synchronous, so calls run in a
    worker thread.
    """

    name = "youtube"

    def __init__(
        self,
        preferred_languages: Optional[List[str]] = None,
        api: Optional[YouTubeTranscriptApi] = None,
    ):
        self.preferred_languages = preferred_languages or settings.YOUTUBE_PREFERRED_TRANSCRIPT_LANGUAGES
        self._api = api or YouTubeTranscriptApi()

    async def fetch_segments(self, video_id: str) -> List[TranscriptSegment]:
        try:
            return await asyncio.to_thread(self._fetch_sync, video_id)
        except (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable) as e:
            raise NotFound(f"No transcript available for video {video_id}") from e
        except RequestBlocked as e:
            logger.error("transcript_request_blocked", video_id=video_id)
            raise RateLimited("YouTube rate limit exceeded, please try again later") from e
        except CouldNotRetrieveTranscript as e:
            raise UpstreamUnavailable(f"Failed to get transcript: {type(e).__name__}") from e

    def _fetch_sync(self, video_id: str) -> List[TranscriptSegment]:
        transcript_list = self._api.list(video_id)

        try:
            transcript = transcript_list.find_transcript(self.preferred_languages)
        except NoTranscriptFound:
            transcript = next(iter(transcript_list), None)
            if transcript is None:
                raise
            logger.info(
                "transcript_non_preferred_language",
                video_id=video_id,
                language=transcript.language_code,
            )

        fetched = transcript.fetch()
        return [
            {"text": snippet.text, "offset": snippet.start, "duration": snippet.duration}
            for snippet in fetched
        ]


# ========================================
# Service
# ========================================

def join_segments(segments: List[TranscriptSegment]) -> str:
    """
    Sort segments by ascending offset and join their text with single spaces.

    Raises:
        NotFound: the segment list is empty
        InvalidFormat: a segment lacks text or has a non-numeric offset
    """
    if not segments:
        raise NotFound("No transcript content available")

    keyed = []
    for segment in segments:
        if not isinstance(segment, dict) or not isinstance(segment.get("text"), str):
            raise InvalidFormat("Invalid transcript format received")
        try:
            offset = float(segment.get("offset"))
        except (TypeError, ValueError) as e:
            raise InvalidFormat("Invalid transcript segment offset") from e
        keyed.append((offset, segment["text"]))

    # sorted() is stable: equal offsets keep provider order
    keyed.sort(key=lambda item: item[0])
    return " ".join(text for _, text in keyed)


class TranscriptService:
    """
    Fetch a video's transcript as one cleaned text blob.

    Example:
        >>> service = TranscriptService()
        >>> text = await service.fetch("dQw4w9WgXcQ")
    """

    def __init__(self, provider: Optional[TranscriptProvider] = None):
        self.provider = provider or get_transcript_provider()

    async def fetch(self, video_id: str) -> str:
        logger.info("fetching_transcript", video_id=video_id, provider=self.provider.name)

        segments = await self.provider.fetch_segments(video_id)
        text = self.clean_transcript(join_segments(segments))

        if not text:
            raise NotFound("No transcript content available")

        logger.info("transcript_fetched", video_id=video_id, segments=len(segments), chars=len(text))
        return text

    @staticmethod
    def clean_transcript(text: str) -> str:
        """
        Clean and normalize transcript text.

        Removes sound effect tags like [Music] and [Applause], decodes the
        HTML entities auto-captions leave behind and collapses whitespace.
        """
        if not text:
            return ""

        text = re.sub(r"\[[^\]]*\]", "", text)

        text = text.replace("&nbsp;", " ")
        text = text.replace("&#39;", "'")
        text = text.replace("&quot;", '"')
        text = text.replace("&lt;", "<")
        text = text.replace("&gt;", ">")
        text = text.replace("&amp;", "&")

        text = re.sub(r"\s+", " ", text)
        return text.strip()


# ========================================
# Helper Functions
# ========================================

def get_transcript_provider() -> TranscriptProvider:
    """Provider selected by settings.TRANSCRIPT_PROVIDER."""
    if settings.TRANSCRIPT_PROVIDER == "youtube":
        return YouTubeTranscriptProvider()
    return RapidAPITranscriptProvider()


def get_transcript_service() -> TranscriptService:
    """
    Get or create transcript service instance.

    Returns:
        TranscriptService instance
    """
    return TranscriptService()
