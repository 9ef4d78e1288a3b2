"""
Record store: single-record CRUD and find-or-create over the content tables.

The store owns no business rules. The orchestrator decides what to write
and in which order; this class makes each write safe:

- one commit per write, so rows written before a later failure stay in place
- find-or-create is `INSERT ... ON CONFLICT DO NOTHING` followed by a
  re-read, so concurrent requests for the same video converge on one row
- every statement runs through `with_retry_result`: transient database
  faults (dropped connections, lock timeouts) are retried, anything else
  surfaces immediately as PersistenceError (HTTP 500)

Example:
    >>> store = RecordStore(session)
    >>> channel = await store.find_or_create_channel("anonymous")
    >>> content = await store.find_or_create_content("dQw4w9WgXcQ", url, channel.id)
"""

import uuid
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import PersistenceError
from app.core.logging import get_logger
from app.core.retry import RetryOptions, with_retry_result
from app.db.result import StoreResult
from app.models import (
    UNKNOWN_CHANNEL_NAME,
    Channel,
    Content,
    ContentTag,
    ContentType,
    Summary,
    SummaryType,
    Tag,
    UserSummaryHistory,
)

logger = get_logger(__name__)

T = TypeVar("T")


class TransientPersistenceError(PersistenceError):
    """Database fault worth another attempt (connection lost, lock timeout)."""

    retryable = True


def classify_db_error(error: SQLAlchemyError) -> PersistenceError:
    """Map a SQLAlchemy exception onto the persistence error types."""
    if isinstance(error, IntegrityError):
        return PersistenceError("Database constraint violated", details={"error_type": type(error).__name__})
    if isinstance(error, OperationalError) or (
        isinstance(error, DBAPIError) and error.connection_invalidated
    ):
        return TransientPersistenceError("Database temporarily unavailable")
    return PersistenceError("Database operation failed", details={"error_type": type(error).__name__})


class RecordStore:
    """CRUD facade over channels, content, summaries, tags and history."""

    def __init__(self, session: AsyncSession, retry_options: Optional[RetryOptions] = None):
        self.session = session
        self.retry_options = retry_options or RetryOptions.from_settings(
            "record_store",
            attempt_timeout=None,
        )

    # ========================================
    # Execution helpers
    # ========================================

    async def _run(self, operation_name: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run one unit of work with retries; raise PersistenceError on failure."""

        async def attempt() -> StoreResult[T]:
            try:
                return StoreResult.ok(await operation())
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.warning(
                    "record_store_statement_failed",
                    operation=operation_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return StoreResult.failed(classify_db_error(e))

        result = await with_retry_result(
            attempt,
            replace(self.retry_options, operation_name=operation_name),
        )
        if result.error is not None:
            logger.error("record_store_operation_failed", operation=operation_name, error=str(result.error))
        return result.unwrap()

    def _insert(self, model: Any):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise PersistenceError(f"Unsupported database dialect: {dialect}")

    # ========================================
    # Channels
    # ========================================

    async def find_channel_by_id(self, channel_id: str) -> Optional[Channel]:
        async def op() -> Optional[Channel]:
            return await self.session.get(Channel, channel_id, populate_existing=True)

        return await self._run("find_channel_by_id", op)

    async def find_or_create_channel(
        self,
        channel_id: str,
        name: str = UNKNOWN_CHANNEL_NAME,
        url: Optional[str] = None,
    ) -> Channel:
        async def op() -> Channel:
            await self.session.execute(
                self._insert(Channel)
                .values(id=channel_id, name=name, url=url, subscriber_count=0)
                .on_conflict_do_nothing()
            )
            await self.session.commit()
            return await self.session.get(Channel, channel_id, populate_existing=True)

        return await self._run("find_or_create_channel", op)

    async def update_channel(self, channel_id: str, **values: Any) -> Optional[Channel]:
        async def op() -> Optional[Channel]:
            await self.session.execute(
                update(Channel).where(Channel.id == channel_id).values(**values)
            )
            await self.session.commit()
            return await self.session.get(Channel, channel_id, populate_existing=True)

        return await self._run("update_channel", op)

    # ========================================
    # Content
    # ========================================

    async def find_content_by_id(self, content_id: str) -> Optional[Content]:
        async def op() -> Optional[Content]:
            return await self.session.get(Content, content_id, populate_existing=True)

        return await self._run("find_content_by_id", op)

    async def find_or_create_content(
        self,
        video_id: str,
        url: str,
        source_id: str,
        title: str = "",
        content_type: ContentType = ContentType.VIDEO,
    ) -> Content:
        """Content keyed by video id; `id` and `unique_identifier` are both the id."""

        async def op() -> Content:
            await self.session.execute(
                self._insert(Content)
                .values(
                    id=video_id,
                    unique_identifier=video_id,
                    content_type=content_type,
                    title=title,
                    url=url,
                    transcript="",
                    source_id=source_id,
                )
                .on_conflict_do_nothing()
            )
            await self.session.commit()
            return await self.session.get(Content, video_id, populate_existing=True)

        return await self._run("find_or_create_content", op)

    async def update_content(self, content_id: str, **values: Any) -> Optional[Content]:
        async def op() -> Optional[Content]:
            await self.session.execute(
                update(Content).where(Content.id == content_id).values(**values)
            )
            await self.session.commit()
            return await self.session.get(Content, content_id, populate_existing=True)

        return await self._run("update_content", op)

    # ========================================
    # Summaries
    # ========================================

    async def _select_summary(self, content_id: str, summary_type: SummaryType) -> Optional[Summary]:
        result = await self.session.execute(
            select(Summary)
            .where(Summary.content_id == content_id, Summary.summary_type == summary_type)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_summary(
        self,
        content_id: str,
        summary_type: SummaryType = SummaryType.SHORT,
    ) -> Optional[Summary]:
        async def op() -> Optional[Summary]:
            return await self._select_summary(content_id, summary_type)

        return await self._run("find_summary", op)

    async def create_summary(
        self,
        content_id: str,
        text: str,
        summary_type: SummaryType = SummaryType.SHORT,
    ) -> Tuple[Summary, bool]:
        """
        Create the summary of this type for the content.

        Returns the stored row and whether this call inserted it. If another
        request created it first, that row is returned unchanged with False.
        """

        async def op() -> Tuple[Summary, bool]:
            result = await self.session.execute(
                self._insert(Summary)
                .values(content_id=content_id, summary=text, summary_type=summary_type)
                .on_conflict_do_nothing(index_elements=["content_id", "summary_type"])
                .returning(Summary.id)
            )
            created = result.scalar_one_or_none() is not None
            await self.session.commit()
            return await self._select_summary(content_id, summary_type), created

        return await self._run("create_summary", op)

    async def upsert_summary(
        self,
        content_id: str,
        text: str,
        summary_type: SummaryType = SummaryType.SHORT,
    ) -> Summary:
        """Create the summary of this type, or replace its text if it exists."""

        async def op() -> Summary:
            stmt = self._insert(Summary).values(
                content_id=content_id,
                summary=text,
                summary_type=summary_type,
            )
            await self.session.execute(
                stmt.on_conflict_do_update(
                    index_elements=["content_id", "summary_type"],
                    set_={"summary": stmt.excluded.summary},
                )
            )
            await self.session.commit()
            return await self._select_summary(content_id, summary_type)

        return await self._run("upsert_summary", op)

    # ========================================
    # Tags
    # ========================================

    async def find_or_create_tag(self, name: str) -> Tag:
        tags = await self.find_or_create_tags([name])
        return tags[0]

    async def find_or_create_tags(self, names: Iterable[str]) -> List[Tag]:
        """
        Find-or-create several tags in one statement.

        Returned in the order of `names` (duplicates collapsed).
        """
        unique_names = list(dict.fromkeys(names))
        if not unique_names:
            return []

        async def op() -> List[Tag]:
            await self.session.execute(
                self._insert(Tag)
                .values([{"id": uuid.uuid4(), "name": name} for name in unique_names])
                .on_conflict_do_nothing(index_elements=["name"])
            )
            await self.session.commit()
            result = await self.session.execute(select(Tag).where(Tag.name.in_(unique_names)))
            by_name = {tag.name: tag for tag in result.scalars()}
            return [by_name[name] for name in unique_names]

        return await self._run("find_or_create_tags", op)

    async def add_content_tags(self, content_id: str, tag_ids: Iterable[uuid.UUID]) -> None:
        """Link tags to content. Existing links are left alone."""
        rows = [{"content_id": content_id, "tag_id": tag_id} for tag_id in dict.fromkeys(tag_ids)]
        if not rows:
            return

        async def op() -> None:
            await self.session.execute(
                self._insert(ContentTag).values(rows).on_conflict_do_nothing()
            )
            await self.session.commit()

        await self._run("add_content_tags", op)

    async def replace_content_tags(self, content_id: str, tag_ids: Iterable[uuid.UUID]) -> None:
        """Make `tag_ids` the complete tag set of the content (one transaction)."""
        rows = [{"content_id": content_id, "tag_id": tag_id} for tag_id in dict.fromkeys(tag_ids)]

        async def op() -> None:
            await self.session.execute(delete(ContentTag).where(ContentTag.content_id == content_id))
            if rows:
                await self.session.execute(self._insert(ContentTag).values(rows))
            await self.session.commit()

        await self._run("replace_content_tags", op)

    async def get_content_tags(self, content_id: str) -> List[Tag]:
        tags = await self.get_tags_for_contents([content_id])
        return tags.get(content_id, [])

    async def get_tags_for_contents(self, content_ids: Iterable[str]) -> Dict[str, List[Tag]]:
        """Tags of several contents in one query, keyed by content id."""
        ids = list(dict.fromkeys(content_ids))
        if not ids:
            return {}

        async def op() -> Dict[str, List[Tag]]:
            result = await self.session.execute(
                select(ContentTag.content_id, Tag)
                .join(Tag, Tag.id == ContentTag.tag_id)
                .where(ContentTag.content_id.in_(ids))
                .order_by(Tag.name)
            )
            tags: Dict[str, List[Tag]] = {}
            for content_id, tag in result.all():
                tags.setdefault(content_id, []).append(tag)
            return tags

        return await self._run("get_tags_for_contents", op)

    # ========================================
    # History
    # ========================================

    async def create_user_summary_history(
        self,
        user_id: str,
        content_id: str,
        summary_id: uuid.UUID,
    ) -> UserSummaryHistory:
        async def op() -> UserSummaryHistory:
            entry = UserSummaryHistory(user_id=user_id, content_id=content_id, summary_id=summary_id)
            self.session.add(entry)
            await self.session.commit()
            return entry

        return await self._run("create_user_summary_history", op)

    async def get_user_summary_history(self, user_id: str, limit: int = 100) -> List[UserSummaryHistory]:
        """The user's history, newest first, with content, channel and summary loaded."""

        async def op() -> List[UserSummaryHistory]:
            result = await self.session.execute(
                select(UserSummaryHistory)
                .where(UserSummaryHistory.user_id == user_id)
                .order_by(UserSummaryHistory.generated_at.desc())
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars())

        return await self._run("get_user_summary_history", op)
