"""
YouTube URL parsing and video metadata.

This module provides:
- `extract_video_info`: pure parser turning any supported YouTube URL into
  a canonical video id (and optional channel id)
- `YouTubeService`: video metadata lookup through the YouTube Data API v3,
  falling back to the public oEmbed endpoint when no API key is configured
  or the API call fails
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import isodate
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.core.config import settings
from app.core.errors import InvalidURL, NotFound, RateLimited, UpstreamUnavailable
from app.core.logging import get_logger
from app.core.retry import retryable

logger = get_logger(__name__)

VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")
CHANNEL_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@-]{1,64}$")

YOUTUBE_HOSTS = frozenset({
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
})
SHORT_LINK_HOST = "youtu.be"

# /shorts/ID, /live/ID, /embed/ID
PATH_ID_PREFIXES = ("/shorts/", "/live/", "/embed/")

CHANNEL_QUERY_PARAMS = ("ab_channel", "channel")


class YouTubeAPIError(UpstreamUnavailable):
    """Base exception for YouTube API errors."""


class YouTubeQuotaExceededError(RateLimited):
    """Raised when YouTube API quota is exceeded."""


class YouTubeVideoNotFoundError(NotFound):
    """Raised when a YouTube video is not found."""


# ========================================
# URL parsing
# ========================================

@dataclass(frozen=True)
class VideoInfo:
    """Identifiers parsed from a video URL."""

    video_id: str
    channel_id: Optional[str] = None


def extract_video_info(url: str) -> VideoInfo:
    """
    Parse a YouTube URL into its video id and optional channel id.

    Supported formats:
    - https://www.youtube.com/watch?v=VIDEO_ID
    - https://youtu.be/VIDEO_ID
    - https://www.youtube.com/shorts/VIDEO_ID
    - https://www.youtube.com/live/VIDEO_ID
    - https://www.youtube.com/embed/VIDEO_ID

    The m. and music. subdomains are accepted, and a missing scheme
    ("youtu.be/VIDEO_ID") is treated as https. The channel id comes from
    the `ab_channel` or `channel` query parameter when present.

    Raises:
        InvalidURL: non-YouTube host, no id in the URL, or an id that is
            not exactly 11 characters of [A-Za-z0-9_-]
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURL("Invalid YouTube URL: URL is empty")

    raw = url.strip()
    if "://" not in raw:
        raw = f"https://{raw}"

    try:
        parsed = urlparse(raw)
        host = (parsed.hostname or "").lower()
    except ValueError as e:
        raise InvalidURL(f"Invalid YouTube URL: {e}") from e

    if parsed.scheme not in ("http", "https"):
        raise InvalidURL("Invalid YouTube URL: Unsupported scheme")

    query = parse_qs(parsed.query)
    video_id: Optional[str] = None

    if host in YOUTUBE_HOSTS:
        if parsed.path.rstrip("/") == "/watch":
            video_id = (query.get("v") or [None])[0]
            if not video_id:
                raise InvalidURL("Invalid YouTube URL: Missing video ID")
        else:
            for prefix in PATH_ID_PREFIXES:
                if parsed.path.startswith(prefix):
                    video_id = parsed.path[len(prefix):].split("/")[0]
                    break
    elif host == SHORT_LINK_HOST:
        video_id = parsed.path.lstrip("/").split("/")[0]
    else:
        raise InvalidURL("Invalid YouTube URL: Not a YouTube domain")

    if not video_id or not VIDEO_ID_PATTERN.match(video_id):
        raise InvalidURL("Invalid YouTube URL: Invalid video ID format")

    channel_id = None
    for param in CHANNEL_QUERY_PARAMS:
        value = (query.get(param) or [""])[0].strip()
        if value and CHANNEL_ID_PATTERN.match(value):
            channel_id = value
            break

    logger.debug("video_info_extracted", video_id=video_id, channel_id=channel_id)
    return VideoInfo(video_id=video_id, channel_id=channel_id)


def validate_video_id(video_id: str) -> bool:
    """True when `video_id` is exactly 11 characters of [A-Za-z0-9_-]."""
    return bool(video_id) and bool(VIDEO_ID_PATTERN.match(video_id))


# ========================================
# Metadata
# ========================================

@dataclass
class VideoMetadata:
    """Display metadata for a video. Every field except video_id/title is optional."""

    video_id: str
    title: str
    channel_id: Optional[str] = None
    channel_title: Optional[str] = None
    channel_url: Optional[str] = None
    published_at: Optional[datetime] = None
    duration_seconds: int = 0

    @classmethod
    def fallback(cls, video_id: str) -> "VideoMetadata":
        return cls(video_id=video_id, title=f"YouTube Video {video_id}")


class YouTubeService:
    """
    Video metadata lookup.

    Uses the YouTube Data API v3 when an API key is available, and the
    oEmbed endpoint otherwise. `get_video_metadata` never raises: metadata
    is cosmetic and must not fail video processing.

    Example:
        >>> youtube = YouTubeService()
        >>> meta = await youtube.get_video_metadata("dQw4w9WgXcQ", url)
        >>> meta.title
        'Rick Astley - Never Gonna Give You Up'
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        oembed_url: Optional[str] = None,
    ):
        """
        Args:
            api_key: YouTube Data API key. If None, uses settings.YOUTUBE_API_KEY
            http_client: Client used for oEmbed requests (injected in tests)
            oembed_url: oEmbed endpoint. If None, uses settings.YOUTUBE_OEMBED_URL
        """
        self.api_key = api_key if api_key is not None else settings.YOUTUBE_API_KEY
        self.oembed_url = oembed_url or settings.YOUTUBE_OEMBED_URL
        self._http_client = http_client
        self._youtube = None

        if self.api_key:
            self._initialize_client()

    def _initialize_client(self) -> None:
        """Initialize YouTube API client."""
        try:
            self._youtube = build(
                "youtube",
                "v3",
                developerKey=self.api_key,
                cache_discovery=False,  # Avoid caching issues in production
            )
            logger.info("youtube_api_client_initialized")
        except Exception as e:
            logger.warning("youtube_api_client_unavailable", error=str(e))
            self._youtube = None

    async def get_video_metadata(self, video_id: str, url: Optional[str] = None) -> VideoMetadata:
        """
        Fetch title and channel information for a video.

        Order of attempts: Data API (if configured) → oEmbed → placeholder
        title "YouTube Video {id}".
        """
        if self._youtube is not None:
            try:
                return await self.get_video_details(video_id)
            except Exception as e:
                logger.warning(
                    "youtube_api_metadata_failed",
                    video_id=video_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        try:
            return await self.get_oembed_metadata(video_id, url)
        except Exception as e:
            logger.warning(
                "oembed_metadata_failed",
                video_id=video_id,
                error=str(e),
                error_type=type(e).__name__,
            )

        return VideoMetadata.fallback(video_id)

    async def get_video_details(self, video_id: str) -> VideoMetadata:
        """
        Get detailed information about a specific video from the Data API.

        Raises:
            YouTubeVideoNotFoundError: If video doesn't exist
            YouTubeQuotaExceededError: If API quota exceeded
            YouTubeAPIError: For other API errors
        """
        if self._youtube is None:
            raise YouTubeAPIError("YouTube API client is not configured")

        request = self._youtube.videos().list(
            part="snippet,contentDetails",
            id=video_id,
        )

        try:
            # googleapiclient is synchronous
            response = await asyncio.to_thread(request.execute)
        except HttpError as e:
            if e.resp.status == 403:
                raise YouTubeQuotaExceededError("YouTube API quota exceeded")
            elif e.resp.status == 404:
                raise YouTubeVideoNotFoundError(f"Video not found: {video_id}")
            else:
                raise YouTubeAPIError(f"YouTube API error: {e}", upstream_status=e.resp.status)

        if not response.get("items"):
            raise YouTubeVideoNotFoundError(f"Video not found: {video_id}")

        return self._parse_video_details(response["items"][0])

    @retryable(operation_name="oembed_lookup", max_attempts=2)
    async def get_oembed_metadata(self, video_id: str, url: Optional[str] = None) -> VideoMetadata:
        """
        Fetch title and author from YouTube oEmbed (no API key needed).

        Transient failures (transport errors, 5xx, 429) are retried once.

        Raises:
            httpx.HTTPError: on a terminal failure or non-2xx status
            OperationFailed: when the retry is also transient
        """
        target = url or f"https://www.youtube.com/watch?v={video_id}"
        params = {"url": target, "format": "json"}

        if self._http_client is not None:
            response = await self._http_client.get(self.oembed_url, params=params)
        else:
            async with httpx.AsyncClient(timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS) as client:
                response = await client.get(self.oembed_url, params=params)

        response.raise_for_status()
        data = response.json()

        return VideoMetadata(
            video_id=video_id,
            title=data.get("title") or f"YouTube Video {video_id}",
            channel_title=data.get("author_name"),
            channel_url=data.get("author_url"),
        )

    # ========================================
    # Utility Functions
    # ========================================

    @staticmethod
    def parse_duration(iso_duration: str) -> int:
        """
        Convert an ISO 8601 duration to whole seconds.

        Example:
            >>> YouTubeService.parse_duration("PT15M33S")
            933
        """
        try:
            return int(isodate.parse_duration(iso_duration).total_seconds())
        except (isodate.ISO8601Error, ValueError, TypeError) as e:
            logger.warning("duration_parse_failed", duration=iso_duration, error=str(e))
            return 0

    # ========================================
    # Helper Methods
    # ========================================

    def _parse_video_details(self, item: Dict) -> VideoMetadata:
        """Parse detailed video data from API response."""
        snippet = item["snippet"]
        content_details = item.get("contentDetails", {})

        duration_seconds = self.parse_duration(content_details.get("duration", "PT0S"))

        published_at = None
        if snippet.get("publishedAt"):
            published_at = datetime.fromisoformat(snippet["publishedAt"].replace("Z", "+00:00"))

        channel_id = snippet.get("channelId")
        return VideoMetadata(
            video_id=item["id"],
            title=snippet.get("title") or f"YouTube Video {item['id']}",
            channel_id=channel_id,
            channel_title=snippet.get("channelTitle"),
            channel_url=f"https://www.youtube.com/channel/{channel_id}" if channel_id else None,
            published_at=published_at,
            duration_seconds=duration_seconds,
        )


# ========================================
# Helper Functions
# ========================================

def get_youtube_service() -> YouTubeService:
    """Get a YouTube metadata service configured from settings."""
    return YouTubeService()
