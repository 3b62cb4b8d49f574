"""Initial schema - users, doctors, schedules, coupons, appointments, prescriptions, chats.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, postgresql.TIMESTAMP(timezone=True), nullable=nullable)


def _audit(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()"),
        nullable=False,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "users",
        _id(),
        sa.Column("firebase_uid", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("email_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("phone", sa.VARCHAR(length=20), nullable=True),
        sa.Column("role", sa.Text(), server_default="patient", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("is_blocked", sa.Boolean(), server_default=sa.false(), nullable=False),
        _audit("created_at"),
        _audit("updated_at"),
        _timestamp("last_login_at"),
        sa.CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="users_role_check"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("firebase_uid"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "doctors",
        _id(),
        sa.Column("user_id", postgresql.UUID(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("specialization", sa.VARCHAR(length=200), nullable=True),
        sa.Column("qualification", sa.Text(), nullable=True),
        sa.Column("experience_years", sa.Integer(), nullable=True),
        sa.Column("about", sa.Text(), nullable=True),
        sa.Column("consultation_fee", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "verification_status",
            sa.VARCHAR(length=20),
            server_default="pending",
            nullable=False,
        ),
        _audit("created_at"),
        _audit("updated_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'approved', 'rejected')",
            name="doctors_verification_status_check",
        ),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_doctors_specialization", "doctors", ["specialization"])
    op.create_index("ix_doctors_is_verified", "doctors", ["is_verified"])

    op.create_table(
        "schedules",
        _id(),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("recurrence_days", postgresql.JSONB(), nullable=True),
        _timestamp("recurrence_until"),
        _timestamp("start_time", nullable=False),
        _timestamp("end_time", nullable=False),
        sa.Column("default_slot_duration", sa.Integer(), nullable=False),
        sa.Column("breaks", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("exceptions", postgresql.JSONB(), server_default="[]", nullable=False),
        _audit("created_at"),
        sa.CheckConstraint("default_slot_duration > 0", name="schedules_duration_check"),
        sa.CheckConstraint("end_time > start_time", name="schedules_window_check"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_schedules_doctor_id", "schedules", ["doctor_id"])

    op.create_table(
        "coupons",
        _id(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("discount", sa.Integer(), nullable=False),
        _audit("start_date"),
        _timestamp("expiration_date", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.false(), nullable=False),
        _audit("created_at"),
        _audit("updated_at"),
        sa.CheckConstraint("discount > 0 AND discount <= 100", name="coupons_discount_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "appointments",
        _id(),
        sa.Column("appointment_id", sa.VARCHAR(length=32), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.VARCHAR(length=16), nullable=False),
        _timestamp("slot_at", nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("fees", sa.Integer(), server_default="0", nullable=False),
        sa.Column("payment_method", sa.Text(), nullable=True),
        sa.Column("payment_status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("provider_order_id", sa.Text(), nullable=True),
        sa.Column("provider_payment_id", sa.Text(), nullable=True),
        sa.Column("provider_signature", sa.Text(), nullable=True),
        sa.Column("payment_attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("coupon_code", sa.Text(), nullable=True),
        sa.Column("coupon_discount", sa.Integer(), nullable=True),
        sa.Column("is_applied", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("prescription_id", postgresql.UUID(), nullable=True),
        sa.Column("review", postgresql.JSONB(), nullable=True),
        sa.Column("medical_records", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("reschedule_reason", sa.Text(), nullable=True),
        _timestamp("rescheduled_at"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        _timestamp("cancelled_at"),
        _audit("created_at"),
        _audit("updated_at"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'completed', 'cancelled', "
            "'cancelledByProvider', 'failed')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded', 'anonymous')",
            name="appointments_payment_status_check",
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_appointments_appointment_id", "appointments", ["appointment_id"], unique=True
    )
    op.create_index("ix_appointments_slot_at", "appointments", ["slot_at"])
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("idx_appointments_doctor_id", "appointments", ["doctor_id"])
    op.create_index(
        "uq_appointments_doctor_slot_live",
        "appointments",
        ["doctor_id", "slot_at"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'accepted', 'completed')"),
    )

    op.create_table(
        "prescriptions",
        _id(),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("diagnosis", sa.Text(), nullable=False),
        sa.Column("medicines", postgresql.JSONB(), nullable=False),
        sa.Column("lab_tests", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("advice", sa.Text(), nullable=True),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        sa.Column("doctor_notes", sa.Text(), nullable=True),
        sa.Column("signature", sa.Text(), nullable=True),
        _audit("created_at"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id"),
    )
    op.create_index("ix_prescriptions_patient_id", "prescriptions", ["patient_id"])
    op.create_index("ix_prescriptions_doctor_id", "prescriptions", ["doctor_id"])

    op.create_table(
        "chats",
        _id(),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        _audit("created_at"),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("patient_id", "doctor_id", name="uq_chats_participants"),
    )

    op.create_table(
        "chat_messages",
        _id(),
        sa.Column("chat_id", postgresql.UUID(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("sender_id", postgresql.UUID(), nullable=False),
        sa.Column("sender_role", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        _audit("created_at"),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("chat_id", "seq", name="uq_chat_messages_seq"),
    )

    # Keep updated_at current on every write
    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ language 'plpgsql';
        """
    )
    for table in ("users", "doctors", "coupons"):
        op.execute(
            f"""
            CREATE TRIGGER update_{table}_updated_at
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
            """
        )


def downgrade() -> None:
    """Downgrade database schema."""
    for table in ("users", "doctors", "coupons"):
        op.execute(f"DROP TRIGGER IF EXISTS update_{table}_updated_at ON {table}")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    op.drop_table("chat_messages")
    op.drop_table("chats")
    op.drop_table("prescriptions")
    op.drop_index("uq_appointments_doctor_slot_live", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("coupons")
    op.drop_table("schedules")
    op.drop_table("doctors")
    op.drop_table("users")
