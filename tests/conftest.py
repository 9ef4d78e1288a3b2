"""
Pytest configuration and fixtures.

This file is automatically discovered by pytest and provides
shared fixtures for all test modules.

The suite runs without PostgreSQL, Redis or network access:
- database: in-memory SQLite through aiosqlite, fresh schema per test
- transcripts / language model: in-process fakes
- HTTP providers: httpx.MockTransport

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- FastAPI Testing: https://fastapi.tiangolo.com/tutorial/testing/
- httpx MockTransport: https://www.python-httpx.org/advanced/transports/#mock-transports
"""

import os

# Settings are read at import time, so the environment is prepared before
# anything from `app` is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("REDIS_CACHE_ENABLED", "false")
os.environ.setdefault("RETRY_INITIAL_DELAY_SECONDS", "0")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

from datetime import timedelta
from typing import AsyncGenerator, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.routes.videos import get_video_processing_service
from app.core.errors import NotFound
from app.core.retry import RetryOptions
from app.core.security import create_access_token
from app.db.base import Base
from app.db.deps import get_db, get_db_override
from app.main import app
from app.services.llm import ChatMessage, LLMClient
from app.services.record_store import RecordStore
from app.services.summarizer import Summarizer, SummarizerConfig
from app.services.transcript_cache import CachedTranscriptService, InMemoryCacheBackend, TranscriptCache
from app.services.transcript_service import TranscriptSegment, TranscriptService
from app.services.video_processing import VideoProcessingService

VIDEO_ID = "dQw4w9WgXcQ"
VIDEO_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"


# ================================
# Fakes
# ================================

class FakeLLM(LLMClient):
    """
    Scripted language model.

    Summaries echo the call number; tag requests return `tag_output`.
    `fail_with` makes every call raise that error instead.
    """

    provider = "fake"
    model = "fake-model"

    def __init__(self, tag_output: str = "Music, Pop, Eighties, Dance, Classic, Video, Retro"):
        self.tag_output = tag_output
        self.calls: List[List[ChatMessage]] = []
        self.fail_with: Optional[Exception] = None

    async def complete(self, messages, temperature, max_tokens, model=None) -> str:
        self.calls.append(messages)
        if self.fail_with is not None:
            raise self.fail_with
        system = messages[0]["content"]
        if system.startswith("Generate"):
            return self.tag_output
        if "detailed" in system or "thoroughly" in system:
            return f"Detailed summary number {len(self.calls)}."
        return f"Summary number {len(self.calls)}."

    @property
    def summary_calls(self) -> int:
        return sum(1 for messages in self.calls if not messages[0]["content"].startswith("Generate"))


class FakeTranscriptProvider:
    """Serves transcripts from a dict; unknown ids are NotFound."""

    name = "fake"

    def __init__(self, transcripts: Optional[Dict[str, List[TranscriptSegment]]] = None):
        self.transcripts = transcripts if transcripts is not None else {
            VIDEO_ID: [
                {"text": "never gonna let you down.", "offset": "3.5", "duration": 2.0},
                {"text": "Never gonna give you up,", "offset": "1.0", "duration": 2.5},
            ],
        }
        self.requests: List[str] = []

    async def fetch_segments(self, video_id: str) -> List[TranscriptSegment]:
        self.requests.append(video_id)
        if video_id not in self.transcripts:
            raise NotFound("No transcript available for this video")
        return self.transcripts[video_id]



class FakeTranscriber:
    """Audio transcriber that records its calls and returns fixed text."""

    def __init__(self, text: str = "hello from the audio"):
        self.text = text
        self.calls: List[tuple] = []

    async def transcribe(self, filename, audio, content_type=None) -> str:
        self.calls.append((filename, audio, content_type))
        return self.text

# ================================
# Database Fixtures
# ================================

@pytest_asyncio.fixture
async def test_engine():
    """
    In-memory SQLite engine with the full schema.

    StaticPool keeps the single in-memory connection alive for the whole
    test; every session shares it.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Database session for one test."""
    async with session_factory() as session:
        yield session


# ================================
# Service Fixtures
# ================================

@pytest.fixture
def fast_retry() -> RetryOptions:
    """Retry policy without sleeping or timeouts."""

    async def no_sleep(_: float) -> None:
        return None

    return RetryOptions(max_attempts=3, initial_delay=0.0, sleep=no_sleep)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_provider() -> FakeTranscriptProvider:
    return FakeTranscriptProvider()


@pytest.fixture
def summarizer_config() -> SummarizerConfig:
    return SummarizerConfig(chunk_size=3000, model="fake-model", tag_count_target=5)


@pytest.fixture
def record_store(db_session: AsyncSession, fast_retry: RetryOptions) -> RecordStore:
    return RecordStore(db_session, retry_options=fast_retry)


@pytest.fixture
def video_service(
    record_store: RecordStore,
    fake_llm: FakeLLM,
    fake_provider: FakeTranscriptProvider,
    summarizer_config: SummarizerConfig,
    fast_retry: RetryOptions,
) -> VideoProcessingService:
    """Full pipeline over the test database and the fakes."""
    transcripts = CachedTranscriptService(
        TranscriptService(fake_provider),
        TranscriptCache(InMemoryCacheBackend(), ttl_seconds=60),
    )
    return VideoProcessingService(
        store=record_store,
        transcripts=transcripts,
        summarizer=Summarizer(fake_llm, summarizer_config, retry_options=fast_retry),
        youtube=None,
        retry_options=fast_retry,
    )


# ================================
# FastAPI Client Fixtures
# ================================

@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    video_service: VideoProcessingService,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for the FastAPI app.

    Usage:
        async def test_something(client: AsyncClient):
            response = await client.get("/api/v1/videos/summaries")
    """
    app.dependency_overrides[get_db] = get_db_override(db_session)
    app.dependency_overrides[get_video_processing_service] = lambda: video_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ================================
# Authentication Fixtures
# ================================

@pytest.fixture
def make_auth_headers() -> Callable[[str], Dict[str, str]]:
    def _make(user_id: str) -> Dict[str, str]:
        token = create_access_token(data={"sub": user_id}, expires_delta=timedelta(minutes=30))
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def auth_headers(make_auth_headers) -> Dict[str, str]:
    """
    Bearer token for "user-1".

    Usage:
        response = await client.get("/api/v1/videos/summaries", headers=auth_headers)
    """
    return make_auth_headers("user-1")


@pytest.fixture
def expired_token() -> str:
    """JWT that expired an hour ago."""
    return create_access_token(data={"sub": "user-1"}, expires_delta=timedelta(hours=-1))
