"""Patient-doctor chat message log."""

from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from telecare.core.lifecycle import Actor, AppointmentStatus
from telecare.models.appointments import appointments
from telecare.models.chats import chat_messages, chats
from telecare.models.doctors import doctors
from telecare.schemas.auth import CurrentActor
from telecare.schemas.chats import (
    ChatResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
)

logger = structlog.get_logger(__name__)

MAX_SEQ_ATTEMPTS = 3

# A chat can be started once the doctor has taken the patient on
CHAT_OPENING_STATUSES = (AppointmentStatus.ACCEPTED.value, AppointmentStatus.COMPLETED.value)


class ChatService:
    """
    Stores chat messages with a per-chat sequence number.

    Clients that reconnect fetch everything after the last ``seq`` they saw,
    so delivery order does not depend on the real-time transport.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def open_chat(self, actor: CurrentActor, doctor_id: UUID) -> ChatResponse:
        """
        Get or create the chat between the calling patient and a doctor.

        Raises:
            NotFoundException: If the doctor does not exist
            ForbiddenException: If the patient has no accepted appointment
                with the doctor and no chat exists yet
        """
        if actor.role != Actor.PATIENT:
            raise ForbiddenException("Only patients can start a chat")

        query = select(chats).where(
            and_(chats.c.patient_id == actor.user_id, chats.c.doctor_id == doctor_id)
        )
        existing = (await self.db.execute(query)).mappings().first()
        if existing:
            return ChatResponse.model_validate(dict(existing))

        doctor = await self.db.execute(select(doctors.c.id).where(doctors.c.id == doctor_id))
        if doctor.first() is None:
            raise NotFoundException("Doctor not found")

        booked = await self.db.execute(
            select(appointments.c.id)
            .where(
                and_(
                    appointments.c.patient_id == actor.user_id,
                    appointments.c.doctor_id == doctor_id,
                    appointments.c.status.in_(CHAT_OPENING_STATUSES),
                )
            )
            .limit(1)
        )
        if booked.first() is None:
            raise ForbiddenException("Chat is available after the doctor accepts an appointment")

        try:
            result = await self.db.execute(
                insert(chats)
                .values(patient_id=actor.user_id, doctor_id=doctor_id)
                .returning(chats)
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = (await self.db.execute(query)).mappings().one()
            return ChatResponse.model_validate(dict(existing))

        return ChatResponse.model_validate(dict(result.mappings().one()))

    async def _get_chat(self, actor: CurrentActor, chat_id: UUID) -> dict:
        row = (await self.db.execute(select(chats).where(chats.c.id == chat_id))).mappings().first()
        if not row:
            raise NotFoundException("Chat not found")
        allowed = (actor.role == Actor.PATIENT and row["patient_id"] == actor.user_id) or (
            actor.role == Actor.DOCTOR and row["doctor_id"] == actor.doctor_id
        )
        if not allowed:
            raise ForbiddenException("Access denied to this chat")
        return dict(row)

    async def post_message(
        self, actor: CurrentActor, chat_id: UUID, data: MessageCreate
    ) -> MessageResponse:
        """
        Append a message, assigning the next sequence number.

        Raises:
            ConflictException: If concurrent writers keep taking the same number
        """
        await self._get_chat(actor, chat_id)

        for _ in range(MAX_SEQ_ATTEMPTS):
            last = await self.db.execute(
                select(func.max(chat_messages.c.seq)).where(chat_messages.c.chat_id == chat_id)
            )
            seq = (last.scalar() or 0) + 1
            try:
                result = await self.db.execute(
                    insert(chat_messages)
                    .values(
                        chat_id=chat_id,
                        seq=seq,
                        sender_id=actor.user_id,
                        sender_role=actor.role.value,
                        content=data.content,
                        image_url=data.image_url,
                    )
                    .returning(chat_messages)
                )
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.info("chat_seq_collision", chat_id=str(chat_id), seq=seq)
                continue
            return MessageResponse.model_validate(dict(result.mappings().one()))

        raise ConflictException("Could not store message, please retry")

    async def list_messages(
        self,
        actor: CurrentActor,
        chat_id: UUID,
        after_seq: int = 0,
        limit: int = 50,
    ) -> MessageListResponse:
        """Messages with ``seq`` greater than ``after_seq``, oldest first."""
        await self._get_chat(actor, chat_id)
        result = await self.db.execute(
            select(chat_messages)
            .where(and_(chat_messages.c.chat_id == chat_id, chat_messages.c.seq > after_seq))
            .order_by(chat_messages.c.seq)
            .limit(limit)
        )
        items = [MessageResponse.model_validate(dict(row)) for row in result.mappings().all()]
        return MessageListResponse(items=items, last_seq=items[-1].seq if items else after_seq)
