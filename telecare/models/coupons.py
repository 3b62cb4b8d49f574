"""Coupon model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, Table, Text, Uuid

from telecare.models.metadata import metadata
from telecare.models.users import utcnow

coupons = Table(
    "coupons",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", Text, nullable=False),
    Column("code", Text, nullable=False, unique=True, index=True),
    # Percentage
    Column("discount", Integer, nullable=False),
    Column("start_date", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("expiration_date", DateTime(timezone=True), nullable=False),
    Column("is_active", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
