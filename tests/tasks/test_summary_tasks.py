"""
Tests for the detailed-summary Celery task.

The async body is called directly against the test database; Celery
itself (broker, worker) is not involved.
"""

import pytest

from app.core.errors import GenerationFailed, InvalidFormat, OperationFailed, RateLimited, UpstreamUnavailable
from app.models import SummaryType
from app.services import video_processing
from app.services.transcript_cache import InMemoryCacheBackend, TranscriptCache
from app.services.transcript_service import TranscriptService
from app.tasks.summary_tasks import SummaryTask, _retryable_cause, generate_detailed_summary_async
from tests.conftest import VIDEO_ID, VIDEO_URL


@pytest.fixture
def wired_services(monkeypatch, fake_llm, fake_provider):
    """Make the task's service factory build the pipeline from the fakes."""

    async def transcript_cache():
        return TranscriptCache(InMemoryCacheBackend(), ttl_seconds=60)

    monkeypatch.setattr(video_processing, "get_llm_client", lambda: fake_llm)
    monkeypatch.setattr(video_processing, "get_transcript_service", lambda: TranscriptService(fake_provider))
    monkeypatch.setattr(video_processing, "get_transcript_cache", transcript_cache)
    monkeypatch.setattr(video_processing, "get_youtube_service", lambda: None)
    return fake_llm


class TestGenerateDetailedSummary:

    @pytest.mark.asyncio
    async def test_unknown_video_is_reported_not_raised(self, session_factory, wired_services):
        result = await generate_detailed_summary_async(VIDEO_ID, session_factory=session_factory)

        assert result["success"] is False
        assert result["video_id"] == VIDEO_ID
        assert result["code"] == "video/not-found"

    @pytest.mark.asyncio
    async def test_stores_detailed_summary(self, session_factory, wired_services, video_service, record_store):
        await video_service.process(VIDEO_URL, user_id="user-1")

        result = await generate_detailed_summary_async(VIDEO_ID, session_factory=session_factory)

        assert result["success"] is True
        detailed = await record_store.find_summary(VIDEO_ID, SummaryType.DETAILED)
        assert result["summary_id"] == str(detailed.id)
        assert detailed.summary.startswith("Detailed summary")

    @pytest.mark.asyncio
    async def test_model_failure_propagates(self, session_factory, wired_services, video_service):
        await video_service.process(VIDEO_URL, user_id="user-1")
        wired_services.fail_with = InvalidFormat("garbage")

        with pytest.raises(GenerationFailed):
            await generate_detailed_summary_async(VIDEO_ID, session_factory=session_factory)


class TestRetryableCause:

    def test_unwraps_exhausted_rate_limit(self):
        limited = RateLimited("busy")
        try:
            try:
                raise OperationFailed("chunk_summary", 3, limited)
            except OperationFailed as e:
                raise GenerationFailed("failed") from e
        except GenerationFailed as error:
            assert _retryable_cause(error) is limited

    def test_permanent_upstream_error_is_not_retried(self):
        error = GenerationFailed("failed")
        error.__cause__ = UpstreamUnavailable("bad key", upstream_status=401)
        assert _retryable_cause(error) is None

    def test_no_cause(self):
        assert _retryable_cause(GenerationFailed("failed")) is None


def test_task_retries_transient_upstream_errors():
    assert UpstreamUnavailable in SummaryTask.autoretry_for
    assert RateLimited in SummaryTask.autoretry_for
    assert SummaryTask.retry_kwargs["max_retries"] == 3
