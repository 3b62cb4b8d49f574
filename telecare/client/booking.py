"""Booking client: validates locally, then calls the API."""

from datetime import date, datetime
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from telecare.client.http import ApiClient
from telecare.client.session import SessionContext
from telecare.core.exceptions import ValidationException
from telecare.schemas.appointments import AppointmentResponse, RescheduleRequest, ReviewCreate
from telecare.schemas.bookings import (
    BookingCreate,
    BookingResponse,
    PaymentFailureRequest,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
    ProviderResponse,
)
from telecare.schemas.coupons import CouponCreate, CouponResponse
from telecare.schemas.prescriptions import PrescriptionCreate, PrescriptionResponse
from telecare.schemas.schedules import SlotListResponse

ModelT = TypeVar("ModelT", bound=BaseModel)

RESCHEDULE_INCOMPLETE = "Please select a date, time, and provide a reason."


def validate_payload(model: type[ModelT], **data: Any) -> ModelT:
    """
    Build ``model`` from ``data`` or raise the first validation message.

    Nothing is sent to the server when validation fails.

    Raises:
        ValidationException: With the first error message, e.g.
            "Expiration date should be in the future."
    """
    try:
        return model(**data)
    except ValidationError as e:
        errors = e.errors()
        message = errors[0]["msg"].removeprefix("Value error, ") if errors else str(e)
        raise ValidationException(message)


class BookingClient:
    """Patient, doctor and admin operations on appointments."""

    def __init__(self, api: ApiClient):
        self.api = api

    @property
    def session(self) -> SessionContext:
        return self.api.session

    async def get_slots(self, doctor_id: UUID | str, day: date) -> SlotListResponse:
        """Open slots of a doctor on a date."""
        data = await self.api.get(f"/doctors/{doctor_id}/slots", params={"date": day.isoformat()})
        return SlotListResponse.model_validate(data)

    async def book(
        self,
        doctor_id: UUID | str,
        day: date,
        time: str,
        fees: int,
        payment_method: str = "razorpay",
        coupon_code: str | None = None,
        reason: str | None = None,
    ) -> BookingResponse:
        """
        Start a booking and remember it as the pending booking.

        Raises:
            ValidationException: Before any request if a field is invalid
        """
        payload = validate_payload(
            BookingCreate,
            doctor_id=doctor_id,
            date=day,
            time=time,
            fees=fees,
            payment_method=payment_method,
            coupon_code=coupon_code or None,
            reason=reason,
        )
        self.session.release_booking()
        data = await self.api.post("/bookings", json=payload.model_dump(mode="json"))
        booking = BookingResponse.model_validate(data)
        # Free bookings have no order and nothing left to verify
        if booking.order is not None:
            self.session.hold_booking(
                booking.appointment.appointment_id,
                order_id=booking.order.id,
                amount=booking.order.amount,
            )
        return booking

    def _pending_code(self, booking_id: str | None) -> str:
        code = booking_id or (
            self.session.pending_booking.appointment_id if self.session.pending_booking else None
        )
        if not code:
            raise ValidationException("No pending booking found")
        return code

    async def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        booking_id: str | None = None,
    ) -> PaymentVerificationResponse:
        """
        Send the provider's checkout result for verification.

        The pending booking is cleared on success. On a verification failure
        it is kept so the payment can be retried under the same code.
        """
        code = self._pending_code(booking_id)
        payload = validate_payload(
            PaymentVerificationRequest,
            provider_response=ProviderResponse(
                order_id=order_id, payment_id=payment_id, signature=signature
            ),
            booking_id=code,
        )
        data = await self.api.post(
            "/bookings/verify", json=payload.model_dump(mode="json", by_alias=True)
        )
        result = PaymentVerificationResponse.model_validate(data)
        self.session.release_booking(code)
        return result

    async def abandon_payment(
        self, booking_id: str | None = None, reason: str | None = None
    ) -> AppointmentResponse:
        """Report a dismissed checkout and clear the pending booking."""
        code = self._pending_code(booking_id)
        payload = PaymentFailureRequest(reason=reason)
        data = await self.api.post(f"/bookings/{code}/payment-failed", json=payload.model_dump())
        self.session.release_booking(code)
        return AppointmentResponse.model_validate(data)

    async def retry_payment(self, booking_id: str) -> BookingResponse:
        """Open a new payment order for a failed or unpaid booking."""
        data = await self.api.post(f"/bookings/{booking_id}/retry-payment")
        booking = BookingResponse.model_validate(data)
        if booking.order is not None:
            self.session.hold_booking(
                booking_id, order_id=booking.order.id, amount=booking.order.amount
            )
        return booking

    async def reschedule(
        self,
        appointment_id: UUID | str,
        day: date | None,
        time: str | None,
        reason: str | None,
    ) -> AppointmentResponse:
        """
        Move an accepted appointment.

        Raises:
            ValidationException: Before any request if date, time or reason is missing
        """
        if day is None or not (time and time.strip()) or not (reason and reason.strip()):
            raise ValidationException(RESCHEDULE_INCOMPLETE)
        payload = validate_payload(RescheduleRequest, date=day, time=time, reason=reason)
        data = await self.api.post(
            f"/appointments/{appointment_id}/reschedule", json=payload.model_dump(mode="json")
        )
        return AppointmentResponse.model_validate(data)

    async def add_review(
        self, appointment_id: UUID | str, rating: int | None, description: str = ""
    ) -> AppointmentResponse:
        """Review a completed appointment."""
        payload = validate_payload(ReviewCreate, rating=rating or 0, description=description)
        data = await self.api.request(
            "PUT", f"/appointments/{appointment_id}/review", json=payload.model_dump()
        )
        return AppointmentResponse.model_validate(data)

    async def attach_prescription(
        self,
        appointment_id: UUID | str,
        diagnosis: str,
        medicines: list[dict[str, Any]],
        **extra: Any,
    ) -> PrescriptionResponse:
        """
        Attach a prescription to a completed appointment.

        Raises:
            ValidationException: Before any request if the diagnosis or a
                medicine field is missing
        """
        payload = validate_payload(
            PrescriptionCreate, diagnosis=diagnosis, medicines=medicines, **extra
        )
        data = await self.api.post(
            f"/appointments/{appointment_id}/prescription", json=payload.model_dump(mode="json")
        )
        return PrescriptionResponse.model_validate(data)

    async def create_coupon(
        self,
        name: str,
        code: str,
        discount: int,
        expiration_date: datetime | None,
        start_date: datetime | None = None,
        is_active: bool = True,
    ) -> CouponResponse:
        """
        Create a coupon (admin).

        Raises:
            ValidationException: Before any request, e.g. "Expiration date
                should be in the future."
        """
        if expiration_date is None:
            raise ValidationException("Expiration date is required.")
        payload = validate_payload(
            CouponCreate,
            name=name,
            code=code,
            discount=discount,
            expiration_date=expiration_date,
            start_date=start_date,
            is_active=is_active,
        )
        data = await self.api.post(
            "/admin/coupons", json=payload.model_dump(mode="json", exclude_none=True)
        )
        return CouponResponse.model_validate(data)
