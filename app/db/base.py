"""
Database Base Classes and Common Utilities

This module provides the foundation for all database models in the application.

Key Concepts:
--------------
1. DeclarativeBase: SQLAlchemy's base class that enables ORM functionality
2. Mixins: Shared columns used across models (UUID primary key, created_at)
3. orm_registry: Central registry that tracks all models and their metadata

Primary keys differ per table on purpose: channels and content are keyed by
their YouTube identifiers (so the identifier *is* the dedup key), while
summaries, tags and history rows get generated UUIDs.

Learning Resources:
- SQLAlchemy Declarative Base: https://docs.sqlalchemy.org/en/20/orm/declarative_config.html
- Table Naming Conventions: Helps with database migrations and readability
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, MetaData, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, registry


# ================================
# Naming Convention for Constraints
# ================================
# Format examples:
# - ix_content_unique_identifier: Index on 'content.unique_identifier'
# - fk_summaries_content_id_content: Foreign key from 'summaries.content_id' to 'content'
# - pk_channels: Primary key on 'channels' table
convention = {
    "ix": "ix_%(column_0_label)s",  # Index
    "uq": "uq_%(table_name)s_%(column_0_name)s",  # Unique constraint
    "ck": "ck_%(table_name)s_%(constraint_name)s",  # Check constraint
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",  # Foreign key
    "pk": "pk_%(table_name)s",  # Primary key
}

# Create metadata with naming conventions
metadata = MetaData(naming_convention=convention)

# Create ORM registry - this tracks all our models
orm_registry = registry(metadata=metadata)


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp. Always store in UTC."""
    return datetime.now(timezone.utc)


# ================================
# Base DeclarativeBase Class
# ================================
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        class Tag(Base):
            __tablename__ = "tags"
            id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    """

    registry = orm_registry
    metadata = metadata

    __tablename__: str

    def dict(self) -> dict[str, Any]:
        """
        Convert model instance to a plain dictionary of column values.

        Used when building API payloads and in log context.
        """
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        pk = ", ".join(
            f"{column.name}={getattr(self, column.name)!r}"
            for column in self.__table__.primary_key.columns
        )
        return f"{self.__class__.__name__}({pk})"


# ================================
# Mixins
# ================================
class UUIDPrimaryKeyMixin:
    """
    Generated UUID primary key.

    `Uuid` is SQLAlchemy's portable type: native UUID on PostgreSQL,
    CHAR(32) on SQLite (used by the test suite).
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Generated UUID primary key"
    )


class CreatedAtMixin:
    """Creation timestamp, set once by the application in UTC."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )


# ================================
# Common String Lengths
# ================================
String64 = String(64)  # Example: YouTube ids, user ids
String100 = String(100)  # Example: tag names
String255 = String(255)  # Example: channel names
String500 = String(500)  # Example: titles
String2048 = String(2048)  # Example: URLs
