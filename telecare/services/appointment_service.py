"""Appointment service: scoped queries and lifecycle transitions."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    SlotConflictException,
)
from telecare.core.lifecycle import (
    Actor,
    AppointmentStatus,
    LifecycleAction,
    PaymentStatus,
    ensure_transition,
)
from telecare.models.appointments import appointments
from telecare.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    MedicalRecordCreate,
    RescheduleRequest,
    ReviewCreate,
)
from telecare.schemas.auth import CurrentActor
from telecare.services.slot_service import SlotService

logger = structlog.get_logger(__name__)

SETTLED_PAYMENT_STATUSES = (PaymentStatus.COMPLETED.value, PaymentStatus.ANONYMOUS.value)


def scope_conditions(actor: CurrentActor) -> list[Any]:
    """Rows an actor may see: patients their own, doctors their practice, admins all."""
    if actor.role == Actor.ADMIN:
        return []
    if actor.role == Actor.DOCTOR:
        if actor.doctor_id is None:
            raise ForbiddenException("Doctor profile not found")
        return [appointments.c.doctor_id == actor.doctor_id]
    return [appointments.c.patient_id == actor.user_id]


def is_participant(actor: CurrentActor, row: dict) -> bool:
    """True if the actor is the patient or the doctor of the appointment."""
    if actor.role == Actor.PATIENT:
        return row["patient_id"] == actor.user_id
    if actor.role == Actor.DOCTOR:
        return actor.doctor_id is not None and row["doctor_id"] == actor.doctor_id
    return False


class AppointmentService:
    """Service for reading and moving appointments through their lifecycle."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_row(self, appointment_id: UUID) -> dict:
        """Load an appointment row or raise NotFoundException."""
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _get_accessible(self, actor: CurrentActor, appointment_id: UUID) -> dict:
        row = await self.get_row(appointment_id)
        if actor.role != Actor.ADMIN and not is_participant(actor, row):
            raise ForbiddenException("Access denied to this appointment")
        return row

    async def get_appointment(
        self, actor: CurrentActor, appointment_id: UUID
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is not a participant or an admin
        """
        return AppointmentResponse.model_validate(await self._get_accessible(actor, appointment_id))

    async def list_appointments(
        self,
        actor: CurrentActor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments visible to the actor with filtering and pagination.

        Args:
            actor: Authenticated caller
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments, latest slot first
        """
        conditions = scope_conditions(actor)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.from_date:
            conditions.append(appointments.c.date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.date <= filters.to_date)

        if filters.search:
            conditions.append(appointments.c.appointment_id.ilike(f"{filters.search.strip()}%"))

        count_stmt = select(func.count()).select_from(appointments).where(and_(true(), *conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(appointments)
            .where(and_(true(), *conditions))
            .order_by(appointments.c.slot_at.desc())
            .limit(filters.page_size)
            .offset((filters.page - 1) * filters.page_size)
        )
        result = await self.db.execute(stmt)

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[
                AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()
            ],
        )

    async def _apply(
        self,
        row: dict,
        action: LifecycleAction,
        actor: CurrentActor,
        values: dict[str, Any],
    ) -> AppointmentResponse:
        """
        Persist a transition guarded by the status that was read.

        Raises:
            ConflictException: If the row changed since it was read
        """
        values.setdefault("updated_at", datetime.now(UTC))
        result = await self.db.execute(
            update(appointments)
            .where(
                and_(
                    appointments.c.id == row["id"],
                    appointments.c.status == row["status"],
                )
            )
            .values(**values)
            .returning(appointments)
        )
        updated = result.mappings().first()
        if not updated:
            await self.db.rollback()
            raise ConflictException("Appointment was modified by another request, reload it")
        await self.db.commit()

        logger.info(
            "appointment_transition",
            appointment_id=row["appointment_id"],
            action=action.value,
            actor=actor.role.value,
            from_status=row["status"],
            to_status=updated["status"],
        )
        return AppointmentResponse.model_validate(dict(updated))

    async def _transition(
        self, actor: CurrentActor, appointment_id: UUID, action: LifecycleAction
    ) -> tuple[dict, AppointmentStatus]:
        row = await self._get_accessible(actor, appointment_id)
        target = ensure_transition(row["status"], action, actor.role)
        return row, target

    async def accept(self, actor: CurrentActor, appointment_id: UUID) -> AppointmentResponse:
        """
        Doctor accepts a pending appointment.

        Only paid (or free) bookings can be accepted; an unpaid one is still
        waiting for payment verification or the abandoned-payment sweep.

        Raises:
            InvalidTransitionException: If the appointment is not pending or
                its payment has not completed
        """
        row, target = await self._transition(actor, appointment_id, LifecycleAction.ACCEPT)
        if row["payment_status"] not in SETTLED_PAYMENT_STATUSES:
            raise InvalidTransitionException("Payment for this appointment is not completed")
        return await self._apply(row, LifecycleAction.ACCEPT, actor, {"status": target.value})

    async def complete(self, actor: CurrentActor, appointment_id: UUID) -> AppointmentResponse:
        """Doctor marks an accepted appointment as completed."""
        row, target = await self._transition(actor, appointment_id, LifecycleAction.COMPLETE)
        return await self._apply(row, LifecycleAction.COMPLETE, actor, {"status": target.value})

    async def cancel(
        self, actor: CurrentActor, appointment_id: UUID, reason: str | None = None
    ) -> AppointmentResponse:
        """
        Cancel an appointment and release its slot.

        A doctor cancelling an accepted appointment records it as cancelled
        by the provider. A paid appointment is flagged for refund.
        """
        row = await self._get_accessible(actor, appointment_id)
        action = LifecycleAction.CANCEL
        if actor.role == Actor.DOCTOR and row["status"] == AppointmentStatus.ACCEPTED.value:
            action = LifecycleAction.CANCEL_BY_PROVIDER

        target = ensure_transition(row["status"], action, actor.role)
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "status": target.value,
            "cancellation_reason": reason,
            "cancelled_at": now,
            "updated_at": now,
        }
        if row["payment_status"] == PaymentStatus.COMPLETED.value:
            values["payment_status"] = PaymentStatus.REFUNDED.value
        return await self._apply(row, action, actor, values)

    async def reschedule(
        self,
        actor: CurrentActor,
        appointment_id: UUID,
        data: RescheduleRequest,
        now: datetime | None = None,
    ) -> AppointmentResponse:
        """
        Move an accepted appointment to another open slot of the same doctor.

        The old slot is released by the same update that claims the new one.

        Raises:
            InvalidTransitionException: If the appointment is not accepted
            BadRequestException: If the new time is not a bookable slot
            SlotConflictException: If the new slot is held
        """
        row, target = await self._transition(actor, appointment_id, LifecycleAction.RESCHEDULE)
        slot = await SlotService(self.db).resolve_slot(
            row["doctor_id"],
            data.date,
            data.time,
            now=now,
            exclude_appointment_id=row["id"],
        )
        values = {
            "status": target.value,
            "date": data.date,
            "time": slot.display,
            "slot_at": slot.starts_at,
            "reschedule_reason": data.reason,
            "rescheduled_at": datetime.now(UTC),
        }
        try:
            return await self._apply(row, LifecycleAction.RESCHEDULE, actor, values)
        except IntegrityError:
            await self.db.rollback()
            raise SlotConflictException()

    async def add_review(
        self, actor: CurrentActor, appointment_id: UUID, data: ReviewCreate
    ) -> AppointmentResponse:
        """Patient reviews (or edits the review of) a completed appointment."""
        row, target = await self._transition(actor, appointment_id, LifecycleAction.REVIEW)
        return await self._apply(
            row,
            LifecycleAction.REVIEW,
            actor,
            {"status": target.value, "review": data.model_dump()},
        )

    async def add_medical_record(
        self, actor: CurrentActor, appointment_id: UUID, data: MedicalRecordCreate
    ) -> AppointmentResponse:
        """Patient attaches a medical record to a pending appointment."""
        row, target = await self._transition(
            actor, appointment_id, LifecycleAction.ADD_MEDICAL_RECORD
        )
        records = [*(row["medical_records"] or []), data.to_record()]
        return await self._apply(
            row,
            LifecycleAction.ADD_MEDICAL_RECORD,
            actor,
            {"status": target.value, "medical_records": records},
        )
