"""
User summary history.

Append-only log: one row every time a user requests (or refreshes) a
summary, including when the summary itself was served from storage.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, String64, UUIDPrimaryKeyMixin, utc_now
from app.models.content import Content, Summary


class UserSummaryHistory(UUIDPrimaryKeyMixin, Base):
    """
    Table: user_summary_history

    `user_id` is the subject of the caller's access token; users live in the
    identity provider, not in this database.
    """

    __tablename__ = "user_summary_history"

    user_id: Mapped[str] = mapped_column(
        String64,
        nullable=False,
        index=True,
    )

    content_id: Mapped[str] = mapped_column(
        ForeignKey("content.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    summary_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("summaries.id", ondelete="CASCADE"),
        nullable=False,
    )

    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )

    content: Mapped[Content] = relationship(lazy="joined")
    summary: Mapped[Summary] = relationship(lazy="joined")
