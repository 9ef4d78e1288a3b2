"""
Direct model endpoints.

Thin HTTP layer over AssistantService: a validated chat completion proxy
and audio transcription of an uploaded file.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile

from app.core.auth import CurrentUserId
from app.core.logging import get_logger
from app.schemas.ai import ChatRequest, ChatResponse, TranscriptionResponse
from app.schemas.video import DataResponse, ErrorResponse
from app.services.assistant import AssistantService, get_assistant_service

logger = get_logger(__name__)

router = APIRouter(prefix="/openai", tags=["AI"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid messages or audio file"},
    401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    429: {"model": ErrorResponse, "description": "Model rate limit"},
    503: {"model": ErrorResponse, "description": "Model unavailable"},
}

Assistant = Annotated[AssistantService, Depends(get_assistant_service)]


@router.post(
    "/chat",
    response_model=DataResponse[ChatResponse],
    summary="Chat completion",
    responses=ERROR_RESPONSES,
)
async def chat(request: ChatRequest, user_id: CurrentUserId, assistant: Assistant):
    messages = [message.model_dump() for message in request.messages]
    content = await assistant.chat(
        messages,
        temperature=request.temperature,
        max_tokens=request.max_tokens,
        model=request.model,
    )
    return DataResponse(data=ChatResponse(content=content, model=request.model or assistant.llm.model))


@router.post(
    "/transcribe",
    response_model=DataResponse[TranscriptionResponse],
    summary="Transcribe an audio file",
    responses=ERROR_RESPONSES,
)
async def transcribe(
    user_id: CurrentUserId,
    assistant: Assistant,
    file: UploadFile = File(...),
):
    audio = await file.read()
    text = await assistant.transcribe(file.filename, audio, file.content_type)
    logger.info("transcription_served", user_id=user_id, chars=len(text))
    return DataResponse(data=TranscriptionResponse(text=text, filename=file.filename or ""))
