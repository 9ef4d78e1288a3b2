"""
Video summary API endpoints.

Summarize a YouTube video, regenerate a summary, list the caller's history
and manage the detailed summary variant. Errors raised by the services are
AppErrors and are rendered by the handlers in app.main.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import CurrentUserId
from app.core.errors import InvalidURL
from app.core.logging import get_logger
from app.db.deps import DBSession
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
from app.services.video_processing import (
    HistoryItem,
    SummaryRecord,
    VideoProcessingService,
    create_video_processing_service,
)
from app.services.youtube import validate_video_id
from app.tasks.summary_tasks import generate_detailed_summary

logger = get_logger(__name__)

router = APIRouter(prefix="/videos", tags=["Videos"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid URL or request body"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    404: {"model": ErrorResponse, "description": "Video or transcript not found"},
    429: {"model": ErrorResponse, "description": "Upstream rate limit"},
    503: {"model": ErrorResponse, "description": "Upstream or model unavailable"},
}


# ========================================
# Dependencies
# ========================================

async def get_video_processing_service(db: DBSession) -> VideoProcessingService:
    """Pipeline wired to the request's database session."""
    return await create_video_processing_service(db)


VideoService = Annotated[VideoProcessingService, Depends(get_video_processing_service)]


# ========================================
# Helper Functions
# ========================================

def _content_response(record_content, channel) -> ContentResponse:
    return ContentResponse(
        id=record_content.id,
        content_type=record_content.content_type,
        unique_identifier=record_content.unique_identifier,
        title=record_content.title,
        url=record_content.url,
        published_at=record_content.published_at,
        duration_seconds=record_content.duration_seconds,
        created_at=record_content.created_at,
        channel=ChannelResponse.model_validate(channel),
    )


def _record_to_response(record: SummaryRecord) -> SummaryRecordResponse:
    """Convert a SummaryRecord into its API schema."""
    return SummaryRecordResponse(
        id=str(record.summary.id),
        summary=record.summary.summary,
        summary_type=record.summary.summary_type,
        created_at=record.summary.created_at,
        detailed_summary=record.detailed_summary.summary if record.detailed_summary else None,
        tags=record.tags,
        content=_content_response(record.content, record.channel),
    )


def _history_to_response(item: HistoryItem) -> HistoryItemResponse:
    entry = item.entry
    return HistoryItemResponse(
        id=str(entry.id),
        generated_at=entry.generated_at,
        summary=SummaryResponse.model_validate(entry.summary),
        content=_content_response(entry.content, entry.content.channel),
        tags=item.tags,
    )


# ========================================
# Endpoints
# ========================================

@router.post(
    "/process",
    response_model=DataResponse[SummaryRecordResponse],
    summary="Summarize a YouTube video",
    description=(
        "Fetch the transcript, generate a short summary and tags, and record "
        "the request in the caller's history. A video that was already "
        "summarized is served from storage."
    ),
    responses=ERROR_RESPONSES,
)
async def process_video(
    request: ProcessVideoRequest,
    user_id: CurrentUserId,
    service: VideoService,
):
    record = await service.process(request.url, user_id)
    return DataResponse(data=_record_to_response(record))


@router.put(
    "/refresh",
    response_model=DataResponse[SummaryRecordResponse],
    summary="Regenerate a video summary",
    description="Re-fetch the transcript and overwrite the stored short summary and tags.",
    responses=ERROR_RESPONSES,
)
async def refresh_video(
    request: RefreshVideoRequest,
    user_id: CurrentUserId,
    service: VideoService,
):
    record = await service.refresh(request.video_id, user_id)
    return DataResponse(data=_record_to_response(record))


@router.get(
    "/summaries",
    response_model=DataResponse[List[HistoryItemResponse]],
    summary="List the caller's summaries",
    description="Summary history of the authenticated user, newest first.",
)
async def list_summaries(
    user_id: CurrentUserId,
    service: VideoService,
    limit: int = Query(100, ge=1, le=500),
):
    items = await service.get_history(user_id, limit=limit)
    return DataResponse(data=[_history_to_response(item) for item in items])


@router.put(
    "/summaries/update",
    response_model=DataResponse[SummaryRecordResponse],
    summary="Store a detailed summary",
    responses=ERROR_RESPONSES,
)
async def update_detailed_summary(
    request: UpdateDetailedSummaryRequest,
    user_id: CurrentUserId,
    service: VideoService,
):
    logger.info("detailed_summary_update_requested", video_id=request.video_id, user_id=user_id)
    record = await service.update_detailed_summary(request.video_id, request.detailed_summary)
    return DataResponse(data=_record_to_response(record))


@router.post(
    "/{video_id}/detailed",
    response_model=DataResponse[DetailedSummaryTaskResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue detailed summary generation",
    description="Generate the detailed summary in the background (Celery).",
    responses=ERROR_RESPONSES,
)
async def queue_detailed_summary(video_id: str, user_id: CurrentUserId):
    if not validate_video_id(video_id):
        raise InvalidURL("Invalid YouTube video ID format")

    task = generate_detailed_summary.delay(video_id)
    logger.info("detailed_summary_queued", video_id=video_id, user_id=user_id, task_id=task.id)
    return DataResponse(data=DetailedSummaryTaskResponse(task_id=task.id, video_id=video_id))
