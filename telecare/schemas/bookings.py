"""Booking and payment schemas."""

from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from telecare.core.lifecycle import AppointmentStatus, PaymentStatus
from telecare.schemas.appointments import AppointmentResponse


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    RAZORPAY = "razorpay"


class BookingCreate(BaseModel):
    """Schema for starting a booking transaction."""

    doctor_id: UUID
    date: date
    time: str = Field(
        ..., min_length=1, max_length=16, description="Slot as displayed, e.g. 10:00AM"
    )
    fees: int = Field(..., ge=0)
    payment_method: PaymentMethod = PaymentMethod.RAZORPAY
    coupon_code: str | None = Field(None, max_length=64)
    reason: str | None = Field(None, max_length=500)

    @field_validator("time")
    @classmethod
    def normalize_time(cls, v: str) -> str:
        """Compare slots case- and space-insensitively."""
        return v.replace(" ", "").upper()


class PaymentOrder(BaseModel):
    """Provider order handle passed to the checkout widget."""

    id: str
    amount: int
    currency: str
    key_id: str | None = None


class BookingResponse(BaseModel):
    """Created (or re-armed) booking with its order handle."""

    appointment: AppointmentResponse
    order: PaymentOrder | None = None


class ProviderResponse(BaseModel):
    """Signed result delivered by the provider's checkout callback."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="razorpay_order_id")
    payment_id: str = Field(..., alias="razorpay_payment_id")
    signature: str = Field(..., alias="razorpay_signature")


class PaymentVerificationRequest(BaseModel):
    """Provider response plus the stored booking identifier."""

    provider_response: ProviderResponse
    booking_context: dict[str, Any] | None = None
    booking_id: str = Field(..., min_length=1, description="Appointment code being paid for")


class PaymentVerificationResponse(BaseModel):
    """Confirmed fee and status after verification."""

    appointment_id: str
    fees: int
    status: AppointmentStatus
    payment_status: PaymentStatus


class PaymentFailureRequest(BaseModel):
    """Client report of an abandoned or failed checkout."""

    reason: str | None = Field(None, max_length=500)
