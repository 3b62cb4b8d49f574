"""User model definition using SQLAlchemy Core."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, Table, Text, Uuid

from telecare.models.metadata import metadata


def utcnow() -> datetime:
    return datetime.now(UTC)


users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Firebase identity
    Column("firebase_uid", Text, unique=True, index=True),
    Column("email", Text, nullable=False, index=True),
    Column("email_verified", Boolean, nullable=False, default=False),
    # Profile info
    Column("full_name", Text),
    Column("photo_url", Text),
    Column("phone", String(20)),
    Column("role", Text, nullable=False, default="patient"),
    # Account state
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_blocked", Boolean, nullable=False, default=False),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("last_login_at", DateTime(timezone=True)),
)
