"""Prescription endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from telecare.dependencies import CurrentActorDep, DatabaseSession, DoctorActor
from telecare.schemas.prescriptions import PrescriptionCreate, PrescriptionResponse
from telecare.services.prescription_service import PrescriptionService

router = APIRouter()


@router.post(
    "/{appointment_id}/prescription",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach prescription",
)
async def attach_prescription(
    appointment_id: UUID,
    data: PrescriptionCreate,
    actor: DoctorActor,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """
    Attach a prescription to a completed appointment.

    A prescription is attached once; a second attempt returns 409.
    """
    return await PrescriptionService(db).attach(actor, appointment_id, data)


@router.get(
    "/{appointment_id}/prescription",
    response_model=PrescriptionResponse,
    summary="Get prescription",
)
async def get_prescription(
    appointment_id: UUID,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """Prescription of an appointment, for its patient or doctor."""
    return await PrescriptionService(db).get_for_appointment(actor, appointment_id)
