"""Appointment schemas for request/response validation."""

from datetime import UTC, date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator

from telecare.core.lifecycle import STATUS_LABELS, AppointmentStatus, PaymentStatus


class Review(BaseModel):
    """Patient review of a completed appointment."""

    rating: int
    description: str = ""


class MedicalRecord(BaseModel):
    """Historical record a patient attaches to a pending appointment."""

    record_date: datetime
    condition: str
    symptoms: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    notes: str = ""


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    appointment_id: str
    patient_id: UUID
    doctor_id: UUID
    date: date
    time: str
    slot_at: datetime
    reason: str | None = None
    status: AppointmentStatus
    fees: int
    payment_method: str | None = None
    payment_status: PaymentStatus
    coupon_code: str | None = None
    coupon_discount: int | None = None
    is_applied: bool = False
    prescription_id: UUID | None = None
    review: Review | None = None
    medical_records: list[MedicalRecord] = Field(default_factory=list)
    reschedule_reason: str | None = None
    rescheduled_at: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        """Display badge shared by the patient, doctor and admin portals."""
        return STATUS_LABELS[self.status]


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    search: str | None = Field(None, max_length=32, description="Appointment code prefix")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class CancelRequest(BaseModel):
    """Optional reason supplied when cancelling."""

    reason: str | None = Field(None, max_length=500)


class RescheduleRequest(BaseModel):
    """Doctor request to move an accepted appointment to another slot."""

    date: date
    time: str
    reason: str

    @field_validator("time", "reason")
    @classmethod
    def require_text(cls, v: str) -> str:
        """Time and reason must both be given."""
        if not v or not v.strip():
            raise ValueError("Please select a date, time, and provide a reason.")
        return v.strip()


class ReviewCreate(BaseModel):
    """Schema for creating or editing a review."""

    rating: int
    description: str = ""

    @field_validator("rating")
    @classmethod
    def validate_rating(cls, v: int) -> int:
        """Rating is a 1-5 star value."""
        if v < 1 or v > 5:
            raise ValueError("Please select a rating")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        """Limit review length."""
        if len(v) > 500:
            raise ValueError("Review description cannot exceed 500 characters")
        return v


class MedicalRecordCreate(BaseModel):
    """Schema for attaching a medical record."""

    condition: str = Field(..., min_length=1, max_length=200)
    symptoms: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    notes: str = Field(default="", max_length=2000)
    record_date: datetime | None = None

    def to_record(self) -> dict:
        """Build the stored JSON entry."""
        return MedicalRecord(
            record_date=self.record_date or datetime.now(UTC),
            condition=self.condition,
            symptoms=self.symptoms,
            medications=self.medications,
            notes=self.notes,
        ).model_dump(mode="json")
