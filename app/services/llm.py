"""
Language model clients.

One small interface, `LLMClient.complete(messages, temperature, max_tokens)`,
over two providers:

- OpenAIChatClient: chat completions (`choices[0].message.content`)
- AnthropicChatClient: Claude messages API (system prompt passed separately)

WhisperTranscriber turns uploaded audio into text through the OpenAI audio
API and shares the same error translation.

Provider SDK exceptions are translated into the application error taxonomy
so the retry wrapper can classify them:

    rate limit (429)           → RateLimited          (retried)
    connection / timeout       → UpstreamUnavailable  (retried)
    5xx / 408                  → UpstreamUnavailable  (retried)
    other 4xx (bad key, etc.)  → UpstreamUnavailable  (terminal)

SDK-level retries are disabled; app.core.retry owns the retry policy.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from app.core.config import settings
from app.core.errors import ErrorCode, RateLimited, UpstreamUnavailable
from app.core.logging import get_logger

logger = get_logger(__name__)

ChatMessage = Dict[str, str]


@contextmanager
def openai_errors(subject: str) -> Iterator[None]:
    """Translate OpenAI SDK exceptions raised inside the block."""
    try:
        yield
    except openai.RateLimitError as e:
        raise RateLimited(f"Rate limit exceeded for {subject}", code=ErrorCode.AI_RATE_LIMIT) from e
    except openai.APIStatusError as e:
        raise UpstreamUnavailable(
            f"{subject.capitalize()} request failed: {e.message}",
            upstream_status=e.status_code,
        ) from e
    except openai.APIConnectionError as e:
        raise UpstreamUnavailable(f"{subject.capitalize()} unreachable: {e}") from e


class LLMClient(ABC):
    """Text-in, text-out chat model."""

    provider: str
    model: str

    @abstractmethod
    async def complete(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        """Return the generated text ("" when the model produced nothing).

        `model` overrides the client default for this call.
        """


class OpenAIChatClient(LLMClient):
    """OpenAI chat completions."""

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or settings.OPENAI_MODEL

        if client is not None:
            self.client = client
        else:
            api_key = api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise ValueError("OpenAI API key is required. Set OPENAI_API_KEY in environment.")
            self.client = AsyncOpenAI(
                api_key=api_key,
                max_retries=0,
                timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
            )

    async def complete(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        with openai_errors("language model"):
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class AnthropicChatClient(LLMClient):
    """Anthropic Claude messages API."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.model = model or settings.ANTHROPIC_MODEL

        if client is not None:
            self.client = client
        else:
            api_key = api_key or settings.ANTHROPIC_API_KEY
            if not api_key:
                raise ValueError("Anthropic API key is required. Set ANTHROPIC_API_KEY in environment.")
            self.client = AsyncAnthropic(
                api_key=api_key,
                max_retries=0,
                timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
            )

    async def complete(
        self,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        conversation = [m for m in messages if m["role"] != "system"]

        try:
            response = await self.client.messages.create(
                model=model or self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system or anthropic.NOT_GIVEN,
                messages=conversation,
            )
        except anthropic.RateLimitError as e:
            raise RateLimited("Rate limit exceeded for language model", code=ErrorCode.AI_RATE_LIMIT) from e
        except anthropic.APIStatusError as e:
            raise UpstreamUnavailable(
                f"Language model request failed: {e.message}",
                upstream_status=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise UpstreamUnavailable(f"Language model unreachable: {e}") from e

        return "".join(block.text for block in response.content if block.type == "text")


class WhisperTranscriber:
    """
    OpenAI audio transcription.

    Example:
        >>> transcriber = WhisperTranscriber()
        >>> text = await transcriber.transcribe("talk.mp3", audio_bytes, "audio/mpeg")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or settings.OPENAI_TRANSCRIPTION_MODEL

        if client is not None:
            self.client = client
        else:
            api_key = api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise ValueError("OpenAI API key is required. Set OPENAI_API_KEY in environment.")
            self.client = AsyncOpenAI(
                api_key=api_key,
                max_retries=0,
                timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
            )

    async def transcribe(self, filename: str, audio: bytes, content_type: Optional[str] = None) -> str:
        with openai_errors("transcription service"):
            response = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio, content_type or "application/octet-stream"),
            )
        return response.text or ""


def get_llm_client() -> LLMClient:
    """Client for settings.LLM_PROVIDER."""
    if settings.LLM_PROVIDER == "anthropic":
        client: LLMClient = AnthropicChatClient()
    else:
        client = OpenAIChatClient()

    logger.info("llm_client_initialized", provider=client.provider, model=client.model)
    return client
