"""Doctor schedule model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Table, Uuid

from telecare.models.metadata import metadata
from telecare.models.users import utcnow

schedules = Table(
    "schedules",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("is_recurring", Boolean, nullable=False, default=False),
    # Weekday codes (MO..SU) and last day for recurring schedules
    Column("recurrence_days", JSON),
    Column("recurrence_until", DateTime(timezone=True)),
    # First window; recurring schedules reuse its local time of day
    Column("start_time", DateTime(timezone=True), nullable=False),
    Column("end_time", DateTime(timezone=True), nullable=False),
    Column("default_slot_duration", Integer, nullable=False),
    # [{"start_time", "end_time"}]
    Column("breaks", JSON, nullable=False, default=list),
    # [{"date", "is_off", "override_slot_duration"}]
    Column("exceptions", JSON, nullable=False, default=list),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
