"""Business logic services."""

from app.services.youtube import YouTubeService, get_youtube_service
from app.services.transcript_service import TranscriptService, get_transcript_service
from app.services.summarizer import Summarizer, SummarizerConfig
from app.services.video_processing import VideoProcessingService, create_video_processing_service

__all__ = [
    "YouTubeService",
    "get_youtube_service",
    "TranscriptService",
    "get_transcript_service",
    "Summarizer",
    "SummarizerConfig",
    "VideoProcessingService",
    "create_video_processing_service",
]
