"""
Pydantic schemas for the direct model endpoints (chat and transcription).
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from app.core.config import settings


class ChatMessageRequest(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(..., min_length=1)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


class ChatRequest(BaseModel):
    """Request schema for a chat completion."""

    messages: List[ChatMessageRequest] = Field(..., min_length=1, max_length=100)
    temperature: float = Field(0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(settings.CHAT_MAX_TOKENS, ge=1, le=4096)
    model: Optional[str] = Field(None, max_length=100, description="Overrides the configured model")


class ChatResponse(BaseModel):
    content: str
    model: str


class TranscriptionResponse(BaseModel):
    text: str
    filename: str
