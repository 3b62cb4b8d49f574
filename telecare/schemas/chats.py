"""Chat schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ChatCreate(BaseModel):
    """Patient request to open a chat with a doctor."""

    doctor_id: UUID


class ChatResponse(BaseModel):
    """Schema for chat response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageCreate(BaseModel):
    """Text and/or image message."""

    content: str | None = Field(None, max_length=4000)
    image_url: str | None = None

    @model_validator(mode="after")
    def require_body(self) -> "MessageCreate":
        if not (self.content and self.content.strip()) and not self.image_url:
            raise ValueError("Message cannot be empty")
        return self


class MessageResponse(BaseModel):
    """Schema for chat message response."""

    id: UUID
    chat_id: UUID
    seq: int
    sender_id: UUID
    sender_role: str
    content: str | None = None
    image_url: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageListResponse(BaseModel):
    """Messages after a sequence number, oldest first."""

    items: list[MessageResponse]
    last_seq: int
