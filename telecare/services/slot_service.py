"""Slot availability for doctors."""

from datetime import UTC, date, datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.config import settings
from telecare.core.exceptions import (
    BadRequestException,
    ServiceUnavailableException,
    SlotConflictException,
)
from telecare.core.lifecycle import SLOT_HOLDING_STATUSES
from telecare.core.slots import (
    Slot,
    as_utc,
    day_bounds,
    filter_available,
    pick_active_schedule,
    schedule_slots,
)
from telecare.models.appointments import appointments
from telecare.models.schedules import schedules
from telecare.schemas.schedules import SlotListResponse, SlotResponse, UpcomingSlotsResponse

logger = structlog.get_logger(__name__)

NO_SCHEDULE = "no_schedule"
NOT_SCHEDULED = "not_scheduled"
FULLY_BOOKED = "fully_booked"


def clinic_timezone() -> ZoneInfo:
    """Time zone in which slots are laid out and displayed."""
    return ZoneInfo(settings.clinic_timezone)


def normalize_slot_label(value: str) -> str:
    """Compare slot labels ignoring case and spaces (``10:00 am`` == ``10:00AM``)."""
    return value.replace(" ", "").upper()


class SlotService:
    """Resolves which slots of a doctor's schedule can still be booked."""

    def __init__(self, db: AsyncSession, tz: ZoneInfo | None = None):
        """Initialize service with database session."""
        self.db = db
        self.tz = tz or clinic_timezone()

    async def _load_schedules(self, doctor_id: UUID) -> list[dict]:
        query = (
            select(schedules)
            .where(schedules.c.doctor_id == doctor_id)
            .order_by(schedules.c.created_at.desc())
        )
        result = await self.db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def _booked_instants(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[datetime]:
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.status.in_([s.value for s in SLOT_HOLDING_STATUSES]),
            appointments.c.slot_at >= start,
            appointments.c.slot_at < end,
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.id != exclude_appointment_id)

        result = await self.db.execute(select(appointments.c.slot_at).where(and_(*conditions)))
        return [as_utc(value) for value in result.scalars().all()]

    async def _day_slots(
        self, doctor_id: UUID, day: date, now: datetime
    ) -> tuple[list[Slot], str | None]:
        active = pick_active_schedule(await self._load_schedules(doctor_id), now, self.tz)
        if active is None:
            return [], NO_SCHEDULE
        slots = schedule_slots(active, day, self.tz)
        if not slots:
            return [], NOT_SCHEDULED
        return slots, None

    async def get_slots(
        self, doctor_id: UUID, day: date, now: datetime | None = None
    ) -> SlotListResponse:
        """
        List the open slots of a doctor on a local calendar day.

        Args:
            doctor_id: Doctor ID
            day: Date in the clinic time zone
            now: Reference time; slots starting at or before it are dropped

        Returns:
            Slots with display time and UTC instant, or ``available=False``
            with the reason nothing can be booked

        Raises:
            ServiceUnavailableException: If the lookup fails; safe to retry
        """
        now = as_utc(now or datetime.now(UTC))
        try:
            slots, reason = await self._day_slots(doctor_id, day, now)
            if reason is None:
                start, end = day_bounds(day, self.tz)
                booked = await self._booked_instants(doctor_id, start, end)
                slots = filter_available(slots, booked, now)
                if not slots:
                    reason = FULLY_BOOKED
        except SQLAlchemyError as e:
            logger.error(
                "slot_lookup_failed", doctor_id=str(doctor_id), date=str(day), error=str(e)
            )
            raise ServiceUnavailableException("Could not load available slots, please retry")

        return SlotListResponse(
            doctor_id=doctor_id,
            date=day,
            available=reason is None,
            reason=reason,
            slots=[SlotResponse(slot=s.display, starts_at=s.starts_at) for s in slots],
        )

    async def list_upcoming_slots(
        self,
        doctor_id: UUID,
        days: int | None = None,
        now: datetime | None = None,
    ) -> UpcomingSlotsResponse:
        """Open slots for each day of the lookahead window that has any."""
        now = as_utc(now or datetime.now(UTC))
        today = now.astimezone(self.tz).date()
        listing = []
        for offset in range(days or settings.slot_lookahead_days):
            day_listing = await self.get_slots(doctor_id, today + timedelta(days=offset), now)
            if day_listing.reason == NO_SCHEDULE:
                break
            if day_listing.available:
                listing.append(day_listing)
        return UpcomingSlotsResponse(doctor_id=doctor_id, days=listing)

    async def resolve_slot(
        self,
        doctor_id: UUID,
        day: date,
        time_label: str,
        now: datetime | None = None,
        exclude_appointment_id: UUID | None = None,
    ) -> Slot:
        """
        Map a (date, displayed time) pair to the canonical slot.

        Args:
            doctor_id: Doctor ID
            day: Date in the clinic time zone
            time_label: Slot as displayed, e.g. ``10:00AM``
            now: Reference time for the past-slot check
            exclude_appointment_id: Appointment whose own hold is ignored
                (used when moving an appointment)

        Raises:
            BadRequestException: If the time is not a slot of the schedule or
                has already started
            SlotConflictException: If the slot is held by another appointment
            ServiceUnavailableException: If the lookup fails
        """
        now = as_utc(now or datetime.now(UTC))
        wanted = normalize_slot_label(time_label)
        try:
            slots, _ = await self._day_slots(doctor_id, day, now)
            slot = next((s for s in slots if normalize_slot_label(s.display) == wanted), None)
            if slot is None:
                raise BadRequestException("Selected time is not an available slot for this doctor")
            if slot.starts_at <= now:
                raise BadRequestException("Selected slot has already started")

            booked = await self._booked_instants(
                doctor_id,
                slot.starts_at,
                slot.starts_at + timedelta(seconds=1),
                exclude_appointment_id=exclude_appointment_id,
            )
        except SQLAlchemyError as e:
            logger.error(
                "slot_lookup_failed", doctor_id=str(doctor_id), date=str(day), error=str(e)
            )
            raise ServiceUnavailableException("Could not load available slots, please retry")

        if booked:
            raise SlotConflictException()
        return slot
