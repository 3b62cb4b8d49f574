"""Chat and chat message models using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)

from telecare.models.metadata import metadata
from telecare.models.users import utcnow

chats = Table(
    "chats",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("patient_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    UniqueConstraint("patient_id", "doctor_id", name="uq_chats_participants"),
)

chat_messages = Table(
    "chat_messages",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("chat_id", Uuid, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False),
    # Monotonic per chat, assigned by the server
    Column("seq", Integer, nullable=False),
    Column("sender_id", Uuid, nullable=False),
    Column("sender_role", Text, nullable=False),
    Column("content", Text),
    Column("image_url", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    UniqueConstraint("chat_id", "seq", name="uq_chat_messages_seq"),
)
