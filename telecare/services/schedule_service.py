"""Doctor schedule management."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import ConflictException
from telecare.core.slots import as_utc, is_schedule_expired
from telecare.models.schedules import schedules
from telecare.schemas.schedules import ScheduleCreate, ScheduleResponse
from telecare.services.slot_service import clinic_timezone

logger = structlog.get_logger(__name__)


class ScheduleService:
    """Service for doctor availability schedules."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.tz = clinic_timezone()

    def _to_response(self, row: dict, now: datetime) -> ScheduleResponse:
        return ScheduleResponse.model_validate(
            {**row, "is_active": not is_schedule_expired(row, now, self.tz)}
        )

    async def list_schedules(
        self, doctor_id: UUID, now: datetime | None = None
    ) -> list[ScheduleResponse]:
        """List a doctor's schedules, newest first, flagging the active one."""
        now = as_utc(now or datetime.now(UTC))
        query = (
            select(schedules)
            .where(schedules.c.doctor_id == doctor_id)
            .order_by(schedules.c.created_at.desc())
        )
        result = await self.db.execute(query)
        return [self._to_response(dict(row), now) for row in result.mappings().all()]

    async def create_schedule(
        self, doctor_id: UUID, data: ScheduleCreate, now: datetime | None = None
    ) -> ScheduleResponse:
        """
        Add a schedule for a doctor.

        Only one schedule may be active at a time; a new one can be added
        once the current one has expired.

        Raises:
            ConflictException: If the doctor still has an active schedule
        """
        now = as_utc(now or datetime.now(UTC))
        existing = await self.list_schedules(doctor_id, now)
        if any(schedule.is_active for schedule in existing):
            raise ConflictException(
                "An active schedule already exists. Wait for it to expire before adding a new one."
            )

        values = data.model_dump(mode="json")
        values.update(
            doctor_id=doctor_id,
            start_time=as_utc(data.start_time),
            end_time=as_utc(data.end_time),
            recurrence_until=as_utc(data.recurrence_until) if data.recurrence_until else None,
            recurrence_days=data.recurrence_days if data.is_recurring else None,
        )
        result = await self.db.execute(insert(schedules).values(**values).returning(schedules))
        await self.db.commit()
        row = dict(result.mappings().one())

        logger.info(
            "schedule_created",
            doctor_id=str(doctor_id),
            schedule_id=str(row["id"]),
            is_recurring=data.is_recurring,
        )
        return self._to_response(row, now)
