"""Doctor schedule and slot schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from telecare.core.slots import WEEKDAY_CODES, as_utc


class BreakWindow(BaseModel):
    """A pause inside the working window; overlapping slots are dropped."""

    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def validate_window(self) -> "BreakWindow":
        if as_utc(self.end_time) <= as_utc(self.start_time):
            raise ValueError("Break end time must be after its start time")
        return self


class ScheduleException(BaseModel):
    """Per-date override: day off, or a different slot length."""

    date: date
    is_off: bool = False
    override_slot_duration: int | None = Field(None, gt=0, le=480)


class ScheduleCreate(BaseModel):
    """Schema for adding a doctor schedule."""

    is_recurring: bool = False
    recurrence_days: list[str] | None = None
    recurrence_until: datetime | None = None
    start_time: datetime
    end_time: datetime
    default_slot_duration: int = Field(..., gt=0, le=480, description="Minutes")
    breaks: list[BreakWindow] = Field(default_factory=list)
    exceptions: list[ScheduleException] = Field(default_factory=list)

    @field_validator("recurrence_days")
    @classmethod
    def validate_days(cls, v: list[str] | None) -> list[str] | None:
        """Accept weekday codes MO..SU in any case."""
        if v is None:
            return v
        days = [day.strip().upper() for day in v]
        unknown = [day for day in days if day not in WEEKDAY_CODES]
        if unknown:
            raise ValueError(f"Unknown recurrence days: {', '.join(unknown)}")
        return sorted(set(days), key=WEEKDAY_CODES.index)

    @model_validator(mode="after")
    def validate_schedule(self) -> "ScheduleCreate":
        start = as_utc(self.start_time)
        end = as_utc(self.end_time)
        if end <= start:
            raise ValueError("End time must be after start time")
        if (end - start).total_seconds() < self.default_slot_duration * 60:
            raise ValueError("Slot duration is longer than the schedule window")
        if self.is_recurring:
            if not self.recurrence_days or self.recurrence_until is None:
                raise ValueError(
                    "Missing recurrence details: recurrenceDays and recurrenceUntil "
                    "are required for recurring schedules."
                )
            if as_utc(self.recurrence_until) < start:
                raise ValueError("Recurrence must end after the schedule starts")
        else:
            for item in self.breaks:
                if as_utc(item.start_time) < start or as_utc(item.end_time) > end:
                    raise ValueError("Breaks must fall inside the schedule window")
        return self


class ScheduleResponse(BaseModel):
    """Schema for schedule response."""

    id: UUID
    doctor_id: UUID
    is_recurring: bool
    recurrence_days: list[str] | None = None
    recurrence_until: datetime | None = None
    start_time: datetime
    end_time: datetime
    default_slot_duration: int
    breaks: list[BreakWindow]
    exceptions: list[ScheduleException]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SlotResponse(BaseModel):
    """A bookable slot: display time plus canonical instant."""

    model_config = ConfigDict(populate_by_name=True)

    slot: str
    starts_at: datetime = Field(..., alias="datetime")


class SlotListResponse(BaseModel):
    """Available slots for one doctor and date.

    ``available`` is False with a ``reason`` when nothing can be booked:
    ``no_schedule``, ``not_scheduled`` (no window that day) or
    ``fully_booked``.
    """

    doctor_id: UUID
    date: date
    available: bool
    reason: str | None = None
    slots: list[SlotResponse] = Field(default_factory=list)


class UpcomingSlotsResponse(BaseModel):
    """Open slots grouped by date over the lookahead window."""

    doctor_id: UUID
    days: list[SlotListResponse]
