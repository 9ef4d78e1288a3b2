"""
Content Models

This module contains the video-summary models for the TubeBrief application.

Models Included:
----------------
1. Channel - A YouTube channel (or the "anonymous" placeholder)
2. Content - One video, keyed by its 11-character YouTube id
3. Summary - Generated summary text for a Content (short or detailed)
4. Tag - Global tag vocabulary
5. ContentTag - Association between Content and Tag
6. ContentType / SummaryType (Enums)

Database Tables:
----------------
- channels
- content
- summaries
- tags
- content_tags

Relationships:
--------------
- Channel (1) ←→ (Many) Content
- Content (1) ←→ (Many) Summary, at most one per SummaryType
- Content (Many) ←→ (Many) Tag via ContentTag

Dedup keys:
-----------
Channel.id and Content.id are the YouTube identifiers themselves, so two
requests for the same video can only ever converge on one row. The
(content_id, summary_type) unique constraint does the same for summaries.

Learning Resources:
-------------------
- Many-to-Many: https://docs.sqlalchemy.org/en/20/orm/basic_relationships.html#many-to-many
- Unique constraints: https://docs.sqlalchemy.org/en/20/core/constraints.html
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, PrimaryKeyConstraint, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import (
    Base,
    CreatedAtMixin,
    String64,
    String100,
    String255,
    String500,
    String2048,
    UUIDPrimaryKeyMixin,
)

ANONYMOUS_CHANNEL_ID = "anonymous"
UNKNOWN_CHANNEL_NAME = "Unknown Channel"


# ================================
# Enums
# ================================

class ContentType(str, enum.Enum):
    """Kind of content item."""

    VIDEO = "video"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


class SummaryType(str, enum.Enum):
    """
    Summary variants.

    SHORT: 150-200 word summary generated on every first request.
    DETAILED: 350+ word summary, generated on demand (or eagerly when
              GENERATE_DETAILED_EAGERLY is set).
    """

    SHORT = "short"
    DETAILED = "detailed"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    # VARCHAR + values (not names) so the same schema works on SQLite and PostgreSQL
    return Enum(
        enum_cls,
        native_enum=False,
        length=16,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


# ================================
# Channel Model
# ================================

class Channel(CreatedAtMixin, Base):
    """
    Channel model - the source a video belongs to.

    Table: channels
    ---------------
    Created once (with a placeholder name when metadata is not available)
    and afterwards only updated to backfill `name`.

    When the submitted URL carries no channel identifier, content is filed
    under the shared "anonymous" channel.
    """

    __tablename__ = "channels"

    id: Mapped[str] = mapped_column(
        String64,
        primary_key=True,
        comment="YouTube channel id or 'anonymous'"
    )

    name: Mapped[str] = mapped_column(
        String255,
        nullable=False,
        default=UNKNOWN_CHANNEL_NAME,
        comment="Channel display name"
    )

    url: Mapped[str | None] = mapped_column(
        String2048,
        nullable=True,
        comment="Channel URL"
    )

    subscriber_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Subscriber count reported by YouTube (0 when unknown)"
    )

    contents: Mapped[list["Content"]] = relationship(
        back_populates="channel",
        lazy="raise",
    )
    # lazy="raise": never load a channel's whole catalogue by accident


# ================================
# Content Model
# ================================

class Content(CreatedAtMixin, Base):
    """
    Content model - one video.

    Table: content
    --------------
    `id` and `unique_identifier` are both the YouTube video id.

    `transcript` starts empty and is filled in once the transcript fetch
    succeeds. A failed fetch leaves it empty, never partially written.
    """

    __tablename__ = "content"

    id: Mapped[str] = mapped_column(
        String64,
        primary_key=True,
        comment="YouTube video id"
    )

    content_type: Mapped[ContentType] = mapped_column(
        _enum_column(ContentType),
        nullable=False,
        default=ContentType.VIDEO,
    )

    unique_identifier: Mapped[str] = mapped_column(
        String64,
        nullable=False,
        unique=True,
        comment="Dedup key, equal to id"
    )

    title: Mapped[str] = mapped_column(
        String500,
        nullable=False,
        default="",
    )

    url: Mapped[str] = mapped_column(
        String2048,
        nullable=False,
        comment="URL as submitted"
    )

    transcript: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    duration_seconds: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Video length; 0 when unknown"
    )

    source_id: Mapped[str] = mapped_column(
        ForeignKey("channels.id"),
        nullable=False,
        index=True,
        comment="Owning channel"
    )

    channel: Mapped[Channel] = relationship(
        back_populates="contents",
        lazy="joined",
    )
    # Many-to-one, always wanted alongside the content

    @property
    def has_transcript(self) -> bool:
        return bool(self.transcript and self.transcript.strip())


# ================================
# Summary Model
# ================================

class Summary(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """
    Generated summary of a Content.

    Table: summaries
    ----------------
    At most one row per (content_id, summary_type). A refresh overwrites
    `summary` in place instead of adding a second row.
    """

    __tablename__ = "summaries"

    content_id: Mapped[str] = mapped_column(
        ForeignKey("content.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    summary: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    summary_type: Mapped[SummaryType] = mapped_column(
        _enum_column(SummaryType),
        nullable=False,
        default=SummaryType.SHORT,
    )

    content: Mapped[Content] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint("content_id", "summary_type", name="uq_summaries_content_type"),
    )


# ================================
# Tag Models
# ================================

class Tag(UUIDPrimaryKeyMixin, Base):
    """Global tag vocabulary. Rows are never modified after creation."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(
        String100,
        nullable=False,
        unique=True,
    )


class ContentTag(Base):
    """Association between Content and Tag."""

    __tablename__ = "content_tags"

    content_id: Mapped[str] = mapped_column(
        ForeignKey("content.id", ondelete="CASCADE"),
        nullable=False,
    )

    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        PrimaryKeyConstraint("content_id", "tag_id"),
    )
