"""
Pydantic schemas for the video summary endpoints.

Every successful response is wrapped in `{"data": ...}`; errors use the
`{"error": {"message", "code"}}` envelope produced by app.main.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import ContentType, SummaryType

T = TypeVar("T")


# ========================================
# Request Schemas
# ========================================

class ProcessVideoRequest(BaseModel):
    """Request schema for summarizing a video."""

    url: str = Field(
        ...,
        description="YouTube video URL",
        min_length=1,
        max_length=2048,
        examples=[
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        ],
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("URL cannot be empty")
        return v


class RefreshVideoRequest(BaseModel):
    """Request schema for regenerating a video's summary."""

    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(
        ...,
        alias="videoId",
        min_length=1,
        max_length=64,
        examples=["dQw4w9WgXcQ"],
    )


class UpdateDetailedSummaryRequest(BaseModel):
    """Request schema for storing a detailed summary."""

    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(..., alias="videoId", min_length=1, max_length=64)
    detailed_summary: str = Field(..., min_length=1)


# ========================================
# Response Schemas
# ========================================

class ChannelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    url: Optional[str] = None
    subscriber_count: int = 0


class ContentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    content_type: ContentType
    unique_identifier: str
    title: str
    url: str
    published_at: Optional[datetime] = None
    duration_seconds: int = 0
    created_at: datetime
    channel: ChannelResponse


class SummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    content_id: str
    summary: str
    summary_type: SummaryType
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return str(v)


class SummaryRecordResponse(BaseModel):
    """A short summary with its video, channel, tags and detailed variant."""

    id: str
    summary: str
    summary_type: SummaryType
    created_at: datetime
    detailed_summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    content: ContentResponse


class HistoryItemResponse(BaseModel):
    """One entry of the caller's summary history."""

    id: str
    generated_at: datetime
    summary: SummaryResponse
    content: ContentResponse
    tags: List[str] = Field(default_factory=list)


class DetailedSummaryTaskResponse(BaseModel):
    task_id: str
    video_id: str


class DataResponse(BaseModel, Generic[T]):
    """Success envelope."""

    data: T


class ErrorBody(BaseModel):
    message: str
    code: str


class ErrorResponse(BaseModel):
    """Error envelope."""

    error: ErrorBody
