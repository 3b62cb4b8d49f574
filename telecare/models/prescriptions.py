"""Prescription model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Table, Text, Uuid

from telecare.models.metadata import metadata
from telecare.models.users import utcnow

prescriptions = Table(
    "prescriptions",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Unique: a prescription is attached exactly once
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("doctor_id", Uuid, nullable=False, index=True),
    Column("diagnosis", Text, nullable=False),
    # [{"name", "dosage", "frequency", "duration", "instructions"}]
    Column("medicines", JSON, nullable=False),
    Column("lab_tests", JSON, nullable=False, default=list),
    Column("advice", Text),
    Column("follow_up_date", Date),
    Column("doctor_notes", Text),
    Column("signature", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
