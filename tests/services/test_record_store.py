"""
Tests for the record store (SQLite in-memory).
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.errors import OperationFailed, PersistenceError
from app.models import ANONYMOUS_CHANNEL_ID, UNKNOWN_CHANNEL_NAME, ContentTag, Summary, SummaryType, Tag
from app.services.record_store import TransientPersistenceError, classify_db_error

VIDEO_ID = "dQw4w9WgXcQ"
URL = f"https://youtu.be/{VIDEO_ID}"


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
class TestChannelsAndContent:

    async def test_find_or_create_channel_is_idempotent(self, record_store):
        first = await record_store.find_or_create_channel(ANONYMOUS_CHANNEL_ID)
        second = await record_store.find_or_create_channel(ANONYMOUS_CHANNEL_ID, name="Other")

        assert first.id == second.id == ANONYMOUS_CHANNEL_ID
        assert second.name == UNKNOWN_CHANNEL_NAME

    async def test_update_channel(self, record_store):
        await record_store.find_or_create_channel("UC123")
        channel = await record_store.update_channel("UC123", name="Rick Astley")
        assert channel.name == "Rick Astley"

    async def test_find_or_create_content(self, record_store):
        channel = await record_store.find_or_create_channel(ANONYMOUS_CHANNEL_ID)

        content = await record_store.find_or_create_content(VIDEO_ID, URL, channel.id)
        again = await record_store.find_or_create_content(VIDEO_ID, "https://other", channel.id)

        assert content.id == content.unique_identifier == VIDEO_ID
        assert again.url == URL
        assert content.transcript == ""
        assert not content.has_transcript
        assert content.channel.id == ANONYMOUS_CHANNEL_ID

    async def test_update_content_returns_fresh_row(self, record_store):
        channel = await record_store.find_or_create_channel(ANONYMOUS_CHANNEL_ID)
        await record_store.find_or_create_content(VIDEO_ID, URL, channel.id)

        content = await record_store.update_content(VIDEO_ID, transcript="hello", title="Title")

        assert content.has_transcript
        assert content.title == "Title"

    async def test_missing_rows(self, record_store):
        assert await record_store.find_content_by_id("missing1234") is None
        assert await record_store.find_channel_by_id("missing") is None


@pytest.mark.asyncio
class TestSummaries:

    @pytest.fixture
    async def content(self, record_store):
        channel = await record_store.find_or_create_channel(ANONYMOUS_CHANNEL_ID)
        return await record_store.find_or_create_content(VIDEO_ID, URL, channel.id)

    async def test_create_summary_keeps_first_row(self, record_store, db_session, content):
        first, first_created = await record_store.create_summary(VIDEO_ID, "first", SummaryType.SHORT)
        second, second_created = await record_store.create_summary(VIDEO_ID, "second", SummaryType.SHORT)

        assert first_created is True
        assert second_created is False
        assert first.id == second.id
        assert second.summary == "first"
        assert await _count(db_session, Summary) == 1

    async def test_upsert_summary_overwrites(self, record_store, db_session, content):
        created = await record_store.upsert_summary(VIDEO_ID, "v1", SummaryType.DETAILED)
        updated = await record_store.upsert_summary(VIDEO_ID, "v2", SummaryType.DETAILED)

        assert created.id == updated.id
        assert updated.summary == "v2"
        assert await _count(db_session, Summary) == 1

    async def test_summary_types_are_independent(self, record_store, content):
        await record_store.create_summary(VIDEO_ID, "short", SummaryType.SHORT)
        await record_store.upsert_summary(VIDEO_ID, "detailed", SummaryType.DETAILED)

        short = await record_store.find_summary(VIDEO_ID, SummaryType.SHORT)
        detailed = await record_store.find_summary(VIDEO_ID, SummaryType.DETAILED)

        assert short.summary == "short"
        assert detailed.summary == "detailed"
        assert short.id != detailed.id


@pytest.mark.asyncio
class TestTags:

    @pytest.fixture
    async def content(self, record_store):
        channel = await record_store.find_or_create_channel(ANONYMOUS_CHANNEL_ID)
        return await record_store.find_or_create_content(VIDEO_ID, URL, channel.id)

    async def test_find_or_create_tags_preserves_order_and_reuses_rows(self, record_store, db_session):
        first = await record_store.find_or_create_tags(["Music", "Pop", "Music"])
        second = await record_store.find_or_create_tags(["Pop", "Retro"])

        assert [tag.name for tag in first] == ["Music", "Pop"]
        assert [tag.name for tag in second] == ["Pop", "Retro"]
        assert first[1].id == second[0].id
        assert await _count(db_session, Tag) == 3

    async def test_find_or_create_single_tag(self, record_store):
        tag = await record_store.find_or_create_tag("Music")
        assert (await record_store.find_or_create_tag("Music")).id == tag.id

    async def test_add_and_replace_content_tags(self, record_store, db_session, content):
        tags = await record_store.find_or_create_tags(["Music", "Pop", "Retro"])

        await record_store.add_content_tags(VIDEO_ID, [tag.id for tag in tags[:2]])
        await record_store.add_content_tags(VIDEO_ID, [tags[0].id])
        assert await _count(db_session, ContentTag) == 2

        await record_store.replace_content_tags(VIDEO_ID, [tags[2].id])
        names = [tag.name for tag in await record_store.get_content_tags(VIDEO_ID)]
        assert names == ["Retro"]

    async def test_get_tags_for_contents(self, record_store, content):
        tags = await record_store.find_or_create_tags(["Pop", "Music"])
        await record_store.add_content_tags(VIDEO_ID, [tag.id for tag in tags])

        by_content = await record_store.get_tags_for_contents([VIDEO_ID, "other123456"])

        assert [tag.name for tag in by_content[VIDEO_ID]] == ["Music", "Pop"]
        assert "other123456" not in by_content


@pytest.mark.asyncio
class TestHistory:

    async def test_history_is_newest_first(self, record_store):
        channel = await record_store.find_or_create_channel(ANONYMOUS_CHANNEL_ID)
        await record_store.find_or_create_content(VIDEO_ID, URL, channel.id)
        await record_store.find_or_create_content("abcdefghijk", URL, channel.id)
        s1, _ = await record_store.create_summary(VIDEO_ID, "one")
        s2, _ = await record_store.create_summary("abcdefghijk", "two")

        await record_store.create_user_summary_history("user-1", VIDEO_ID, s1.id)
        await record_store.create_user_summary_history("user-1", "abcdefghijk", s2.id)
        await record_store.create_user_summary_history("user-2", VIDEO_ID, s1.id)

        history = await record_store.get_user_summary_history("user-1")

        assert [entry.content_id for entry in history] == ["abcdefghijk", VIDEO_ID]
        assert history[0].summary.summary == "two"
        assert history[0].content.channel.id == ANONYMOUS_CHANNEL_ID


# ========================================
# Error handling
# ========================================

def test_classify_db_error():
    transient = classify_db_error(OperationalError("SELECT 1", {}, Exception("connection lost")))
    assert isinstance(transient, TransientPersistenceError)
    assert transient.retryable


@pytest.mark.asyncio
async def test_transient_failures_exhaust_into_persistence_error(record_store, monkeypatch):
    calls = {"count": 0}

    async def failing_get(*args, **kwargs):
        calls["count"] += 1
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(record_store.session, "get", failing_get)

    with pytest.raises(OperationFailed) as exc_info:
        await record_store.find_content_by_id(VIDEO_ID)

    assert calls["count"] == record_store.retry_options.max_attempts
    assert isinstance(exc_info.value.cause, PersistenceError)
    assert exc_info.value.status_code == 500
