"""Booking and payment endpoints."""

from fastapi import APIRouter, status

from telecare.dependencies import (
    CacheManagerDep,
    DatabaseSession,
    PatientActor,
    PaymentGatewayDep,
)
from telecare.schemas.appointments import AppointmentResponse
from telecare.schemas.bookings import (
    BookingCreate,
    BookingResponse,
    PaymentFailureRequest,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
)
from telecare.services.booking_service import BookingService

router = APIRouter()


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_booking(
    data: BookingCreate,
    actor: PatientActor,
    db: DatabaseSession,
    gateway: PaymentGatewayDep,
    cache_manager: CacheManagerDep,
) -> BookingResponse:
    """
    Reserve a slot and open a payment order.

    The appointment stays pending until the payment is verified. A slot
    taken by a concurrent booking returns 409 ``SlotConflictException``.

    Args:
        data: Doctor, date, time, fees, payment method, optional coupon
        actor: Authenticated patient
        db: Database session
        gateway: Payment provider client
        cache_manager: Cache manager

    Returns:
        Pending appointment and provider order
    """
    service = BookingService(db, gateway, cache_manager)
    return await service.book(actor.user_id, data)


@router.post(
    "/verify",
    response_model=PaymentVerificationResponse,
    summary="Verify payment",
)
async def verify_payment(
    data: PaymentVerificationRequest,
    actor: PatientActor,
    db: DatabaseSession,
    gateway: PaymentGatewayDep,
) -> PaymentVerificationResponse:
    """
    Verify the provider's signed response and confirm the booking.

    A mismatch marks the appointment failed and returns 400.
    """
    return await BookingService(db, gateway).verify_payment(actor.user_id, data)


@router.post(
    "/{code}/payment-failed",
    response_model=AppointmentResponse,
    summary="Report failed payment",
)
async def report_payment_failed(
    code: str,
    actor: PatientActor,
    db: DatabaseSession,
    gateway: PaymentGatewayDep,
    data: PaymentFailureRequest | None = None,
) -> AppointmentResponse:
    """Mark a booking failed after the checkout was dismissed or declined."""
    reason = data.reason if data else None
    return await BookingService(db, gateway).mark_payment_failed(actor.user_id, code, reason)


@router.post(
    "/{code}/retry-payment",
    response_model=BookingResponse,
    summary="Retry payment",
)
async def retry_payment(
    code: str,
    actor: PatientActor,
    db: DatabaseSession,
    gateway: PaymentGatewayDep,
) -> BookingResponse:
    """Open a new payment order for an unpaid booking, keeping its code."""
    return await BookingService(db, gateway).retry_payment(actor.user_id, code)
