"""Doctor directory, slot availability and schedule endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from telecare.core.exceptions import NotFoundException
from telecare.dependencies import CacheManagerDep, DatabaseSession, DoctorActor
from telecare.schemas.doctors import DoctorListResponse, DoctorResponse
from telecare.schemas.schedules import (
    ScheduleCreate,
    ScheduleResponse,
    SlotListResponse,
    UpcomingSlotsResponse,
)
from telecare.services.doctor_service import DoctorService
from telecare.services.schedule_service import ScheduleService
from telecare.services.slot_service import SlotService

router = APIRouter()


@router.get(
    "",
    response_model=DoctorListResponse,
    summary="List doctors",
)
async def list_doctors(
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    specialization: str | None = Query(None, description="Filter by specialization"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> DoctorListResponse:
    """List verified doctors."""
    listing = await DoctorService(cache_manager).get_doctors(
        db, page=page, page_size=page_size, specialization=specialization
    )
    return DoctorListResponse.model_validate(listing)


@router.get(
    "/me/schedules",
    response_model=list[ScheduleResponse],
    summary="List my schedules",
)
async def list_my_schedules(actor: DoctorActor, db: DatabaseSession) -> list[ScheduleResponse]:
    """Schedules of the calling doctor, newest first."""
    return await ScheduleService(db).list_schedules(actor.doctor_id)


@router.post(
    "/me/schedules",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a schedule",
)
async def create_my_schedule(
    data: ScheduleCreate,
    actor: DoctorActor,
    db: DatabaseSession,
) -> ScheduleResponse:
    """
    Add an availability schedule for the calling doctor.

    Returns 409 while another schedule is still active.
    """
    return await ScheduleService(db).create_schedule(actor.doctor_id, data)


@router.get(
    "/{doctor_id}",
    response_model=DoctorResponse,
    summary="Get doctor",
)
async def get_doctor(
    doctor_id: UUID,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorResponse:
    """Get a doctor's public profile."""
    doctor = await DoctorService(cache_manager).get_doctor_by_id(db, doctor_id)
    if not doctor:
        raise NotFoundException("Doctor not found")
    return DoctorResponse.model_validate(doctor)


@router.get(
    "/{doctor_id}/slots",
    response_model=SlotListResponse,
    summary="Available slots for a date",
)
async def get_doctor_slots(
    doctor_id: UUID,
    db: DatabaseSession,
    day: date = Query(..., alias="date", description="Date in the clinic time zone"),
) -> SlotListResponse:
    """
    List open slots of a doctor on a date.

    An empty day is not an error: ``available`` is false and ``reason``
    says why.

    Args:
        doctor_id: Doctor ID
        db: Database session
        day: Calendar date

    Returns:
        Slots with display time and canonical instant
    """
    return await SlotService(db).get_slots(doctor_id, day)


@router.get(
    "/{doctor_id}/slots/upcoming",
    response_model=UpcomingSlotsResponse,
    summary="Upcoming open slots",
)
async def get_upcoming_slots(
    doctor_id: UUID,
    db: DatabaseSession,
    days: int | None = Query(None, ge=1, le=60, description="Lookahead in days"),
) -> UpcomingSlotsResponse:
    """Open slots grouped by date, for date pickers and rescheduling."""
    return await SlotService(db).list_upcoming_slots(doctor_id, days)
