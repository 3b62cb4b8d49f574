"""Prescription attachment for completed appointments."""

from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import ConflictException, ForbiddenException, NotFoundException
from telecare.core.lifecycle import Actor, AppointmentStatus, LifecycleAction, ensure_transition
from telecare.models.appointments import appointments
from telecare.models.prescriptions import prescriptions
from telecare.schemas.auth import CurrentActor
from telecare.schemas.prescriptions import PrescriptionCreate, PrescriptionResponse
from telecare.services.appointment_service import AppointmentService, is_participant

logger = structlog.get_logger(__name__)


class PrescriptionService:
    """Attaches a prescription once per appointment and serves it to participants."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def attach(
        self, actor: CurrentActor, appointment_id: UUID, data: PrescriptionCreate
    ) -> PrescriptionResponse:
        """
        Attach a prescription to a completed appointment.

        Raises:
            ForbiddenException: If the actor is not the appointment's doctor
            InvalidTransitionException: If the appointment is not completed
            ConflictException: If a prescription is already attached
        """
        row = await AppointmentService(self.db).get_row(appointment_id)
        if actor.role != Actor.DOCTOR or not is_participant(actor, row):
            raise ForbiddenException("Only the appointment's doctor can attach a prescription")

        ensure_transition(row["status"], LifecycleAction.ATTACH_PRESCRIPTION, actor.role)
        if row["prescription_id"] is not None:
            raise ConflictException("A prescription is already attached to this appointment")

        values = data.model_dump(mode="json")
        values.update(
            appointment_id=row["id"],
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            follow_up_date=data.follow_up_date,
        )
        try:
            result = await self.db.execute(
                insert(prescriptions).values(**values).returning(prescriptions)
            )
            prescription = dict(result.mappings().one())

            linked = await self.db.execute(
                update(appointments)
                .where(
                    and_(
                        appointments.c.id == row["id"],
                        appointments.c.status == AppointmentStatus.COMPLETED.value,
                        appointments.c.prescription_id.is_(None),
                    )
                )
                .values(prescription_id=prescription["id"])
            )
            if linked.rowcount != 1:
                raise ConflictException("A prescription is already attached to this appointment")
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("A prescription is already attached to this appointment")
        except ConflictException:
            await self.db.rollback()
            raise

        logger.info(
            "prescription_attached",
            appointment_id=row["appointment_id"],
            prescription_id=str(prescription["id"]),
        )
        return PrescriptionResponse.model_validate(prescription)

    async def get_for_appointment(
        self, actor: CurrentActor, appointment_id: UUID
    ) -> PrescriptionResponse:
        """
        Get the prescription of an appointment.

        Raises:
            ForbiddenException: If the actor is not the patient or doctor of it
            NotFoundException: If nothing is attached yet
        """
        row = await AppointmentService(self.db).get_row(appointment_id)
        if not is_participant(actor, row):
            raise ForbiddenException("Access denied to this prescription")

        result = await self.db.execute(
            select(prescriptions).where(prescriptions.c.appointment_id == row["id"])
        )
        prescription = result.mappings().first()
        if not prescription:
            raise NotFoundException("No prescription attached to this appointment")
        return PrescriptionResponse.model_validate(dict(prescription))
