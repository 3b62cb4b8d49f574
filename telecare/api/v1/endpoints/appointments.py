"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from telecare.core.lifecycle import AppointmentStatus
from telecare.dependencies import CurrentActorDep, DatabaseSession
from telecare.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    CancelRequest,
    MedicalRecordCreate,
    RescheduleRequest,
    ReviewCreate,
)
from telecare.services.appointment_service import AppointmentService

router = APIRouter()


@router.get(
    "",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActorDep,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    search: str | None = Query(None, max_length=32, description="Appointment code prefix"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller.

    Patients see their own, doctors those of their practice.

    Args:
        actor: Authenticated caller
        db: Database session
        status_filter: Filter by status
        doctor_id: Filter by doctor ID
        patient_id: Filter by patient ID
        from_date: Earliest appointment date
        to_date: Latest appointment date
        search: Appointment code prefix
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        search=search,
        page=page,
        page_size=page_size,
    )
    return await AppointmentService(db).list_appointments(actor, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get one appointment the caller takes part in."""
    return await AppointmentService(db).get_appointment(actor, appointment_id)


@router.post(
    "/{appointment_id}/accept",
    response_model=AppointmentResponse,
    summary="Accept appointment",
)
async def accept_appointment(
    appointment_id: UUID,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Doctor accepts a pending appointment."""
    return await AppointmentService(db).accept(actor, appointment_id)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Doctor completes an accepted appointment."""
    return await AppointmentService(db).complete(actor, appointment_id)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    actor: CurrentActorDep,
    db: DatabaseSession,
    data: CancelRequest | None = None,
) -> AppointmentResponse:
    """
    Cancel an appointment and release its slot.

    Returns 409 ``InvalidTransitionException`` once the appointment is
    completed, cancelled or failed.
    """
    reason = data.reason if data else None
    return await AppointmentService(db).cancel(actor, appointment_id, reason)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: RescheduleRequest,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Doctor moves an accepted appointment to another open slot."""
    return await AppointmentService(db).reschedule(actor, appointment_id, data)


@router.put(
    "/{appointment_id}/review",
    response_model=AppointmentResponse,
    summary="Review appointment",
)
async def review_appointment(
    appointment_id: UUID,
    data: ReviewCreate,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Patient adds or edits the review of a completed appointment."""
    return await AppointmentService(db).add_review(actor, appointment_id, data)


@router.post(
    "/{appointment_id}/medical-records",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach medical record",
)
async def add_medical_record(
    appointment_id: UUID,
    data: MedicalRecordCreate,
    actor: CurrentActorDep,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Patient attaches a medical record before the consultation."""
    return await AppointmentService(db).add_medical_record(actor, appointment_id, data)
