"""Prescription schemas for request/response validation."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

REQUIRED_MEDICINE_FIELDS = ("name", "dosage", "frequency", "duration")


class Medicine(BaseModel):
    """One prescribed medicine."""

    name: str
    dosage: str
    frequency: str
    duration: str
    instructions: str = ""

    @model_validator(mode="before")
    @classmethod
    def require_fields(cls, data: Any) -> Any:
        """Every medicine needs name, dosage, frequency and duration."""
        if isinstance(data, dict):
            for field in REQUIRED_MEDICINE_FIELDS:
                value = data.get(field)
                if not isinstance(value, str) or not value.strip():
                    raise ValueError("Please fill in all required medicine fields")
        return data


class PrescriptionCreate(BaseModel):
    """Schema for attaching a prescription to a completed appointment."""

    diagnosis: str = ""
    medicines: list[Medicine] = Field(default_factory=list)
    lab_tests: list[str] = Field(default_factory=list)
    advice: str | None = Field(None, max_length=2000)
    follow_up_date: date | None = None
    doctor_notes: str | None = Field(None, max_length=2000)
    signature: str | None = Field(None, description="URL of the uploaded signature image")

    @model_validator(mode="before")
    @classmethod
    def require_diagnosis(cls, data: Any) -> Any:
        """Diagnosis and at least one medicine are mandatory."""
        if isinstance(data, dict):
            diagnosis = data.get("diagnosis")
            if not isinstance(diagnosis, str) or not diagnosis.strip():
                raise ValueError("Diagnosis is required")
            if not data.get("medicines"):
                raise ValueError("At least one medicine is required")
        return data


class PrescriptionResponse(BaseModel):
    """Schema for prescription response."""

    id: UUID
    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    diagnosis: str
    medicines: list[Medicine]
    lab_tests: list[str]
    advice: str | None = None
    follow_up_date: date | None = None
    doctor_notes: str | None = None
    signature: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
