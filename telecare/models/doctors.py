"""Doctor model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text, Uuid

from telecare.models.metadata import metadata
from telecare.models.users import utcnow

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    Column("full_name", Text, nullable=False),
    Column("specialization", String(200), index=True),
    Column("qualification", Text),
    Column("experience_years", Integer),
    Column("about", Text),
    # Whole currency units
    Column("consultation_fee", Integer, nullable=False, default=0),
    Column("is_verified", Boolean, nullable=False, default=False, index=True),
    # pending until an admin approves or rejects the registration
    Column("verification_status", String(20), nullable=False, default="pending"),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
