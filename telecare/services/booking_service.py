"""Booking transaction: reserve a slot, take payment, confirm."""

import random
import time
from datetime import UTC, datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.config import settings
from telecare.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    PaymentGatewayException,
    PaymentVerificationException,
    SlotConflictException,
)
from telecare.core.lifecycle import (
    SLOT_HOLDING_STATUSES,
    Actor,
    AppointmentStatus,
    LifecycleAction,
    PaymentStatus,
    ensure_transition,
)
from telecare.core.payments import PaymentGateway
from telecare.core.redis_client import CacheManager
from telecare.core.slots import as_utc
from telecare.models.appointments import appointments
from telecare.schemas.appointments import AppointmentResponse
from telecare.schemas.bookings import (
    BookingCreate,
    BookingResponse,
    PaymentOrder,
    PaymentVerificationRequest,
    PaymentVerificationResponse,
)
from telecare.services.coupon_service import CouponService, apply_discount
from telecare.services.doctor_service import DoctorService
from telecare.services.slot_service import SlotService

logger = structlog.get_logger(__name__)

MAX_CODE_ATTEMPTS = 5

SETTLED_PAYMENT_STATUSES = (
    PaymentStatus.COMPLETED.value,
    PaymentStatus.REFUNDED.value,
    PaymentStatus.ANONYMOUS.value,
)


class BookingService:
    """
    Drives a booking from slot reservation to confirmed payment.

    The appointment row is inserted as ``pending`` before the provider order
    is created, so the slot is held while the patient pays. The database's
    unique (doctor, slot) index decides races between concurrent bookings.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        cache_manager: CacheManager | None = None,
    ):
        """Initialize service with database session and payment gateway."""
        self.db = db
        self.gateway = gateway
        self.cache = cache_manager

    @staticmethod
    def generate_appointment_code() -> str:
        """Human-readable code: prefix, last five digits of the clock, one random digit."""
        stamp = str(int(time.time() * 1000))[-5:]
        return f"{settings.appointment_code_prefix}{stamp}{random.randint(0, 9)}"

    async def _unique_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self.generate_appointment_code()
            taken = await self.db.execute(
                select(appointments.c.id).where(appointments.c.appointment_id == code)
            )
            if taken.first() is None:
                return code
        raise ConflictException("Could not allocate an appointment code, please retry")

    async def _get_owned(self, patient_id: UUID, code: str) -> dict:
        result = await self.db.execute(
            select(appointments).where(appointments.c.appointment_id == code)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        if row["patient_id"] != patient_id:
            raise ForbiddenException("Access denied to this appointment")
        return dict(row)

    async def _update(self, row: dict, values: dict) -> dict:
        """Apply ``values`` if the row still has the status we read."""
        values.setdefault("updated_at", datetime.now(UTC))
        result = await self.db.execute(
            update(appointments)
            .where(
                and_(
                    appointments.c.id == row["id"],
                    appointments.c.status == row["status"],
                )
            )
            .values(**values)
            .returning(appointments)
        )
        updated = result.mappings().first()
        if not updated:
            await self.db.rollback()
            raise ConflictException("Appointment was modified by another request")
        await self.db.commit()
        return dict(updated)

    async def _slot_taken_by_other(self, row: dict) -> bool:
        result = await self.db.execute(
            select(appointments.c.id).where(
                and_(
                    appointments.c.doctor_id == row["doctor_id"],
                    appointments.c.slot_at == as_utc(row["slot_at"]),
                    appointments.c.status.in_([s.value for s in SLOT_HOLDING_STATUSES]),
                    appointments.c.id != row["id"],
                )
            )
        )
        return result.first() is not None

    async def _create_order(self, row: dict) -> PaymentOrder:
        order = await self.gateway.create_order(row["fees"], receipt=row["appointment_id"])
        return PaymentOrder(**order)

    async def book(
        self, patient_id: UUID, data: BookingCreate, now: datetime | None = None
    ) -> BookingResponse:
        """
        Reserve a slot and open a payment order.

        Args:
            patient_id: ID of the booking patient
            data: Doctor, slot, fee, payment method and optional coupon
            now: Reference time

        Returns:
            The pending appointment and the provider order to pay

        Raises:
            NotFoundException: If the doctor does not exist
            BadRequestException: If the fee, slot or coupon is invalid
            SlotConflictException: If the slot is already held
            PaymentGatewayException: If the order cannot be created; the
                appointment is then marked failed and can be retried by code
        """
        now = as_utc(now or datetime.now(UTC))
        await self.expire_abandoned_payments(now)

        doctor = await DoctorService(self.cache).get_doctor_by_id(self.db, data.doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")
        if not doctor["is_verified"]:
            raise BadRequestException("Doctor is not accepting appointments")
        if data.fees != doctor["consultation_fee"]:
            raise BadRequestException("Fees do not match the doctor's consultation fee")

        slot = await SlotService(self.db).resolve_slot(data.doctor_id, data.date, data.time, now)

        amount = data.fees
        coupon = None
        if data.coupon_code:
            coupon = await CouponService(self.db).get_applicable_coupon(data.coupon_code, now)
            amount = apply_discount(data.fees, coupon["discount"])

        code = await self._unique_code()
        values = {
            "appointment_id": code,
            "patient_id": patient_id,
            "doctor_id": data.doctor_id,
            "date": data.date,
            "time": slot.display,
            "slot_at": slot.starts_at,
            "reason": data.reason,
            "status": AppointmentStatus.PENDING.value,
            "fees": amount,
            "payment_method": data.payment_method.value,
            "payment_status": (
                PaymentStatus.PENDING.value if amount > 0 else PaymentStatus.ANONYMOUS.value
            ),
            "coupon_code": coupon["code"] if coupon else None,
            "coupon_discount": coupon["discount"] if coupon else None,
            "is_applied": coupon is not None,
            "medical_records": [],
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.db.execute(
                insert(appointments).values(**values).returning(appointments)
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "booking_slot_conflict",
                doctor_id=str(data.doctor_id),
                slot_at=slot.starts_at.isoformat(),
            )
            raise SlotConflictException()

        row = dict(result.mappings().one())
        logger.info(
            "appointment_booked",
            appointment_id=code,
            doctor_id=str(data.doctor_id),
            slot_at=slot.starts_at.isoformat(),
            fees=amount,
        )

        if amount == 0:
            return BookingResponse(appointment=AppointmentResponse.model_validate(row))

        try:
            order = await self._create_order(row)
        except PaymentGatewayException:
            await self._fail(row, reason="order_failed")
            raise PaymentGatewayException(
                f"Payment could not be started. Retry payment for booking {code}."
            )

        row = await self._update(row, {"provider_order_id": order.id, "payment_attempts": 1})
        return BookingResponse(appointment=AppointmentResponse.model_validate(row), order=order)

    async def verify_payment(
        self, patient_id: UUID, data: PaymentVerificationRequest
    ) -> PaymentVerificationResponse:
        """
        Verify the provider's signed checkout result and confirm the booking.

        A verification failure moves an unpaid appointment to ``failed``
        before the error is raised. Repeating a successful verification
        returns the same result; any other result for an already settled
        payment is rejected without changing the appointment.

        Raises:
            PaymentVerificationException: If the order or signature does not match
            SlotConflictException: If a failed booking's slot was taken before
                the retry payment completed; the payment is marked refunded
            InvalidTransitionException: If the appointment can no longer be paid
        """
        row = await self._get_owned(patient_id, data.booking_id)
        response = data.provider_response

        if (
            row["payment_status"] == PaymentStatus.COMPLETED.value
            and row["provider_payment_id"] == response.payment_id
        ):
            return self._verification_result(row)
        if row["payment_status"] in SETTLED_PAYMENT_STATUSES:
            # Settled rows are never touched by a second, different provider result
            logger.warning(
                "payment_verification_rejected",
                appointment_id=row["appointment_id"],
                payment_status=row["payment_status"],
                payment_id=response.payment_id,
            )
            raise PaymentVerificationException("Payment for this appointment is already settled")

        verified = row["provider_order_id"] == response.order_id and self.gateway.verify_signature(
            response.order_id, response.payment_id, response.signature
        )
        if not verified:
            if row["payment_status"] == PaymentStatus.PENDING.value:
                await self._fail(row, reason="signature_mismatch")
            raise PaymentVerificationException()

        target = ensure_transition(row["status"], LifecycleAction.CONFIRM_PAYMENT, Actor.SYSTEM)
        paid = {
            "status": target.value,
            "payment_status": PaymentStatus.COMPLETED.value,
            "provider_payment_id": response.payment_id,
            "provider_signature": response.signature,
        }
        try:
            row = await self._update(row, paid)
        except IntegrityError:
            await self.db.rollback()
            await self._update(
                row,
                {
                    "payment_status": PaymentStatus.REFUNDED.value,
                    "provider_payment_id": response.payment_id,
                    "provider_signature": response.signature,
                },
            )
            logger.warning("payment_slot_lost", appointment_id=row["appointment_id"])
            raise SlotConflictException(
                "Slot was booked by someone else before payment completed; "
                "the payment will be refunded"
            )

        logger.info(
            "payment_verified",
            appointment_id=row["appointment_id"],
            payment_id=response.payment_id,
        )
        return self._verification_result(row)

    @staticmethod
    def _verification_result(row: dict) -> PaymentVerificationResponse:
        return PaymentVerificationResponse(
            appointment_id=row["appointment_id"],
            fees=row["fees"],
            status=row["status"],
            payment_status=row["payment_status"],
        )

    async def _fail(self, row: dict, reason: str, actor: Actor = Actor.SYSTEM) -> dict:
        if row["status"] == AppointmentStatus.FAILED.value:
            values = {"payment_status": PaymentStatus.FAILED.value}
        else:
            target = ensure_transition(row["status"], LifecycleAction.FAIL_PAYMENT, actor)
            values = {"status": target.value, "payment_status": PaymentStatus.FAILED.value}
        row = await self._update(row, values)
        logger.warning(
            "payment_failed",
            appointment_id=row["appointment_id"],
            reason=reason,
        )
        return row

    async def mark_payment_failed(
        self, patient_id: UUID, code: str, reason: str | None = None
    ) -> AppointmentResponse:
        """
        Record that the patient abandoned or failed checkout.

        Raises:
            InvalidTransitionException: If the payment already completed or
                the appointment is past the payment step
        """
        row = await self._get_owned(patient_id, code)
        if row["payment_status"] == PaymentStatus.COMPLETED.value:
            raise InvalidTransitionException("Payment for this appointment is already completed")
        if row["status"] == AppointmentStatus.FAILED.value and (
            row["payment_status"] == PaymentStatus.FAILED.value
        ):
            return AppointmentResponse.model_validate(row)
        row = await self._fail(row, reason=reason or "abandoned", actor=Actor.PATIENT)
        return AppointmentResponse.model_validate(row)

    async def retry_payment(
        self, patient_id: UUID, code: str, now: datetime | None = None
    ) -> BookingResponse:
        """
        Open a new provider order for an unpaid booking under the same code.

        A failed booking keeps its status until the new payment verifies; its
        slot must still be free when retrying and again at confirmation.

        Raises:
            InvalidTransitionException: If the booking is not awaiting payment
            SlotConflictException: If the slot was taken in the meantime
            BadRequestException: If the slot time has passed
            PaymentGatewayException: If the order cannot be created
        """
        now = as_utc(now or datetime.now(UTC))
        row = await self._get_owned(patient_id, code)

        unpaid = row["payment_status"] in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)
        retryable = row["status"] in (
            AppointmentStatus.PENDING.value,
            AppointmentStatus.FAILED.value,
        )
        if not (retryable and unpaid):
            raise InvalidTransitionException("Payment for this appointment cannot be retried")
        if as_utc(row["slot_at"]) <= now:
            raise BadRequestException("Appointment time has already passed")
        if row["status"] == AppointmentStatus.FAILED.value and await self._slot_taken_by_other(row):
            raise SlotConflictException()

        order = await self._create_order(row)
        row = await self._update(
            row,
            {
                "provider_order_id": order.id,
                "payment_status": PaymentStatus.PENDING.value,
                "payment_attempts": row["payment_attempts"] + 1,
                "updated_at": now,
            },
        )
        logger.info(
            "payment_retry_started",
            appointment_id=code,
            attempt=row["payment_attempts"],
        )
        return BookingResponse(appointment=AppointmentResponse.model_validate(row), order=order)

    async def expire_abandoned_payments(self, now: datetime | None = None) -> int:
        """
        Fail pending bookings whose payment never completed in time.

        Returns:
            Number of appointments moved to ``failed``
        """
        now = as_utc(now or datetime.now(UTC))
        cutoff = now - timedelta(minutes=settings.payment_timeout_minutes)
        result = await self.db.execute(
            update(appointments)
            .where(
                and_(
                    appointments.c.status == AppointmentStatus.PENDING.value,
                    appointments.c.payment_status == PaymentStatus.PENDING.value,
                    appointments.c.updated_at < cutoff,
                )
            )
            .values(
                status=AppointmentStatus.FAILED.value,
                payment_status=PaymentStatus.FAILED.value,
                updated_at=now,
            )
        )
        await self.db.commit()
        if result.rowcount:
            logger.info("abandoned_payments_expired", count=result.rowcount)
        return result.rowcount
