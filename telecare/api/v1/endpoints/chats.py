"""Chat endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from telecare.dependencies import CurrentActorDep, DatabaseSession, PatientActor
from telecare.schemas.chats import (
    ChatCreate,
    ChatResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
)
from telecare.services.chat_service import ChatService

router = APIRouter()


@router.post(
    "",
    response_model=ChatResponse,
    summary="Open chat with a doctor",
)
async def open_chat(data: ChatCreate, actor: PatientActor, db: DatabaseSession) -> ChatResponse:
    """Return the existing chat with the doctor, creating it if needed."""
    return await ChatService(db).open_chat(actor, data.doctor_id)


@router.get(
    "/{chat_id}/messages",
    response_model=MessageListResponse,
    summary="Fetch messages",
)
async def list_messages(
    chat_id: UUID,
    actor: CurrentActorDep,
    db: DatabaseSession,
    after_seq: int = Query(0, ge=0, description="Return messages after this sequence number"),
    limit: int = Query(50, ge=1, le=200),
) -> MessageListResponse:
    """Messages after ``after_seq``; clients pass the last seq they hold when reconnecting."""
    return await ChatService(db).list_messages(actor, chat_id, after_seq, limit)


@router.post(
    "/{chat_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
)
async def post_message(
    chat_id: UUID,
    data: MessageCreate,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> MessageResponse:
    """Store a message and assign its sequence number."""
    return await ChatService(db).post_message(actor, chat_id, data)
