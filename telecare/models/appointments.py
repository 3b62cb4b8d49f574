"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from telecare.models.metadata import metadata
from telecare.models.users import utcnow

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Human-readable code, e.g. APT123456
    Column("appointment_id", String(32), nullable=False, unique=True, index=True),
    # Ownership / references
    Column("patient_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    # Slot: local date and display time, plus the canonical UTC instant
    Column("date", Date, nullable=False),
    Column("time", String(16), nullable=False),
    Column("slot_at", DateTime(timezone=True), nullable=False, index=True),
    Column("reason", Text),
    Column("status", Text, nullable=False, default="pending"),
    # Payment
    Column("fees", Integer, nullable=False, default=0),
    Column("payment_method", Text),
    Column("payment_status", Text, nullable=False, default="pending"),
    Column("provider_order_id", Text),
    Column("provider_payment_id", Text),
    Column("provider_signature", Text),
    Column("payment_attempts", Integer, nullable=False, default=0),
    # Coupon snapshot taken at booking
    Column("coupon_code", Text),
    Column("coupon_discount", Integer),
    Column("is_applied", Boolean, nullable=False, default=False),
    # Clinical attachments
    Column("prescription_id", Uuid),
    Column("review", JSON),
    Column("medical_records", JSON, nullable=False, default=list),
    # Lifecycle bookkeeping
    Column("reschedule_reason", Text),
    Column("rescheduled_at", DateTime(timezone=True)),
    Column("cancellation_reason", Text),
    Column("cancelled_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
    CheckConstraint(
        "status IN ('pending', 'accepted', 'completed', 'cancelled', "
        "'cancelledByProvider', 'failed')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'completed', 'failed', 'refunded', 'anonymous')",
        name="appointments_payment_status_check",
    ),
)

# One live appointment per doctor slot; losers of a booking race get an IntegrityError
_holding = text("status IN ('pending', 'accepted', 'completed')")
Index(
    "uq_appointments_doctor_slot_live",
    appointments.c.doctor_id,
    appointments.c.slot_at,
    unique=True,
    postgresql_where=_holding,
    sqlite_where=_holding,
)
