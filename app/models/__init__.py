"""
Database Models

Import models from this module to ensure they're registered with SQLAlchemy:

    from app.models import Channel, Content, Summary, Tag

This ensures that:
1. Alembic can detect all models for migrations
2. Relationships work correctly
3. All models are available throughout the app
"""

from app.models.content import (
    ANONYMOUS_CHANNEL_ID,
    UNKNOWN_CHANNEL_NAME,
    Channel,
    Content,
    ContentTag,
    ContentType,
    Summary,
    SummaryType,
    Tag,
)
from app.models.history import UserSummaryHistory

__all__ = [
    # Content models
    "Channel",
    "Content",
    "Summary",
    "Tag",
    "ContentTag",
    # History
    "UserSummaryHistory",
    # Enums
    "ContentType",
    "SummaryType",
    # Constants
    "ANONYMOUS_CHANNEL_ID",
    "UNKNOWN_CHANNEL_NAME",
]
