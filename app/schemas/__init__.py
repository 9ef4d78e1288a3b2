"""
Pydantic schemas for request/response validation.

Import all schemas here for easy access.
"""

from app.schemas.video import (
    ChannelResponse,
    ContentResponse,
    DataResponse,
    DetailedSummaryTaskResponse,
    ErrorResponse,
    HistoryItemResponse,
    ProcessVideoRequest,
    RefreshVideoRequest,
    SummaryRecordResponse,
    SummaryResponse,
    UpdateDetailedSummaryRequest,
)

__all__ = [
    # Requests
    "ProcessVideoRequest",
    "RefreshVideoRequest",
    "UpdateDetailedSummaryRequest",
    # Responses
    "ChannelResponse",
    "ContentResponse",
    "SummaryResponse",
    "SummaryRecordResponse",
    "HistoryItemResponse",
    "DetailedSummaryTaskResponse",
    "DataResponse",
    "ErrorResponse",
]
