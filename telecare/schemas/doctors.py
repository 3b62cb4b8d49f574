"""Doctor schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class DoctorVerificationStatus(str, Enum):
    """Admin review state of a doctor registration."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DoctorCreate(BaseModel):
    """Schema for registering a doctor profile for an existing user."""

    user_id: UUID
    full_name: str = Field(..., min_length=1, max_length=200)
    specialization: str | None = Field(None, max_length=200)
    qualification: str | None = None
    experience_years: int | None = Field(None, ge=0, le=80)
    about: str | None = Field(None, max_length=2000)
    consultation_fee: int = Field(..., ge=0)
    is_verified: bool = True


class DoctorVerificationUpdate(BaseModel):
    """Approve or reject a doctor; only approved doctors can be booked."""

    status: DoctorVerificationStatus

    @field_validator("status")
    @classmethod
    def validate_decision(cls, v: DoctorVerificationStatus) -> DoctorVerificationStatus:
        if v == DoctorVerificationStatus.PENDING:
            raise ValueError("Verification status must be approved or rejected.")
        return v

    @property
    def is_verified(self) -> bool:
        return self.status == DoctorVerificationStatus.APPROVED


class DoctorResponse(BaseModel):
    """Schema for doctor response."""

    id: UUID
    user_id: UUID
    full_name: str
    specialization: str | None = None
    qualification: str | None = None
    experience_years: int | None = None
    about: str | None = None
    consultation_fee: int
    is_verified: bool
    verification_status: DoctorVerificationStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class DoctorListResponse(BaseModel):
    """Schema for paginated doctor list response."""

    total: int
    page: int
    page_size: int
    items: list[DoctorResponse]
