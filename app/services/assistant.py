"""
Direct model access for the client app: free-form chat and audio
transcription.

Both calls go through app.core.retry.with_retry with the RETRY_* policy.
Input checks that the request schema cannot express (upload size and
extension) raise InvalidInput before any upstream call is made.
"""

from dataclasses import replace
from pathlib import PurePosixPath
from typing import List, Optional

from app.core.config import settings
from app.core.errors import InvalidInput, UpstreamUnavailable
from app.core.logging import get_logger
from app.core.retry import RetryOptions, with_retry
from app.services.llm import ChatMessage, LLMClient, WhisperTranscriber, get_llm_client

logger = get_logger(__name__)

AUDIO_EXTENSIONS = frozenset({".mp3", ".mp4", ".mpeg", ".mpga", ".m4a", ".wav", ".webm", ".ogg", ".flac"})


class AssistantService:
    """Chat completions and audio transcription behind the retry policy."""

    def __init__(
        self,
        llm: LLMClient,
        transcriber: Optional[WhisperTranscriber] = None,
        retry_options: Optional[RetryOptions] = None,
        max_audio_bytes: Optional[int] = None,
    ):
        self.llm = llm
        self.transcriber = transcriber
        self.retry_options = retry_options or RetryOptions.from_settings("assistant")
        self.max_audio_bytes = max_audio_bytes or settings.AUDIO_UPLOAD_MAX_BYTES

    async def chat(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        logger.info("chat_completion_requested", messages=len(messages), model=model or self.llm.model)
        return await with_retry(
            lambda: self.llm.complete(messages, temperature=temperature, max_tokens=max_tokens, model=model),
            replace(self.retry_options, operation_name="chat_completion"),
        )

    async def transcribe(self, filename: Optional[str], audio: bytes, content_type: Optional[str] = None) -> str:
        """
        Transcribe an uploaded audio file.

        Raises:
            InvalidInput: empty, oversized, or not an audio file
            UpstreamUnavailable: transcription is not configured
        """
        name = PurePosixPath(filename).name if filename else ""
        if PurePosixPath(name).suffix.lower() not in AUDIO_EXTENSIONS:
            raise InvalidInput(
                f"Unsupported audio file: {name or 'no filename'}",
                details={"allowed": sorted(AUDIO_EXTENSIONS)},
            )
        if not audio:
            raise InvalidInput("Audio file is empty")
        if len(audio) > self.max_audio_bytes:
            raise InvalidInput(
                "Audio file is too large",
                details={"max_bytes": self.max_audio_bytes, "size": len(audio)},
            )
        if self.transcriber is None:
            raise UpstreamUnavailable("Audio transcription is not configured")

        logger.info("audio_transcription_requested", filename=name, size=len(audio))
        text = await with_retry(
            lambda: self.transcriber.transcribe(name, audio, content_type),
            replace(self.retry_options, operation_name="transcribe_audio"),
        )
        logger.info("audio_transcribed", filename=name, chars=len(text))
        return text


def get_assistant_service() -> AssistantService:
    """Assistant wired from settings. Transcription needs OPENAI_API_KEY."""
    transcriber = WhisperTranscriber() if settings.OPENAI_API_KEY else None
    return AssistantService(get_llm_client(), transcriber)
