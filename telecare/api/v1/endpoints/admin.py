"""Admin-only endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from telecare.core.lifecycle import AppointmentStatus
from telecare.dependencies import AdminActor, CacheManagerDep, DatabaseSession, PaymentGatewayDep
from telecare.schemas.appointments import AppointmentFilters, AppointmentListResponse
from telecare.schemas.coupons import (
    CouponActiveUpdate,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
)
from telecare.schemas.doctors import DoctorCreate, DoctorResponse, DoctorVerificationUpdate
from telecare.schemas.users import AdminUserResponse, UserBlockUpdate
from telecare.services.appointment_service import AppointmentService
from telecare.services.booking_service import BookingService
from telecare.services.coupon_service import CouponService
from telecare.services.doctor_service import DoctorService
from telecare.services.user_service import UserService

router = APIRouter(prefix="/admin", tags=["Admin"])


class ExpiredPaymentsResponse(BaseModel):
    """Result of an abandoned-payment sweep."""

    expired: int


@router.get(
    "/appointments",
    response_model=AppointmentListResponse,
    summary="List all appointments (admin only)",
)
async def list_all_appointments(
    admin: AdminActor,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    search: str | None = Query(None, max_length=32, description="Appointment code prefix"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
) -> AppointmentListResponse:
    """Every appointment across patients and doctors, filterable by code and status."""
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        search=search,
        page=page,
        page_size=page_size,
    )
    return await AppointmentService(db).list_appointments(admin, filters)


@router.patch(
    "/users/{user_id}/block",
    response_model=AdminUserResponse,
    summary="Block or unblock a user",
)
async def set_user_blocked(
    user_id: UUID,
    data: UserBlockUpdate,
    admin: AdminActor,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> AdminUserResponse:
    """
    Block or unblock a user.

    A blocked user's next request is rejected with 403 "User is blocked".
    """
    user = await UserService(cache_manager).set_blocked(db, user_id, data.is_blocked)
    return AdminUserResponse.model_validate(user)


@router.post(
    "/doctors",
    response_model=DoctorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a doctor",
)
async def create_doctor(
    data: DoctorCreate,
    admin: AdminActor,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorResponse:
    """Create a doctor profile for an existing user and grant the doctor role."""
    doctor = await DoctorService(cache_manager).create_doctor(db, data)
    return DoctorResponse.model_validate(doctor)


@router.patch(
    "/doctors/{doctor_id}/verification",
    response_model=DoctorResponse,
    summary="Approve or reject a doctor",
)
async def set_doctor_verification(
    doctor_id: UUID,
    data: DoctorVerificationUpdate,
    admin: AdminActor,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> DoctorResponse:
    """
    Approve or reject a doctor registration.

    Only approved doctors are listed and can be booked.
    """
    doctor = await DoctorService(cache_manager).set_verification(db, doctor_id, data)
    return DoctorResponse.model_validate(doctor)


@router.post(
    "/payments/expire",
    response_model=ExpiredPaymentsResponse,
    summary="Fail abandoned payments",
)
async def expire_abandoned_payments(
    admin: AdminActor,
    db: DatabaseSession,
    gateway: PaymentGatewayDep,
) -> ExpiredPaymentsResponse:
    """Move unpaid bookings past the payment timeout to failed, releasing their slots."""
    expired = await BookingService(db, gateway).expire_abandoned_payments()
    return ExpiredPaymentsResponse(expired=expired)


@router.get(
    "/coupons",
    response_model=list[CouponResponse],
    summary="List coupons",
)
async def list_coupons(admin: AdminActor, db: DatabaseSession) -> list[CouponResponse]:
    """All coupons, newest first."""
    return await CouponService(db).list_coupons()


@router.post(
    "/coupons",
    response_model=CouponResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create coupon",
)
async def create_coupon(
    data: CouponCreate,
    admin: AdminActor,
    db: DatabaseSession,
) -> CouponResponse:
    """Create a percentage discount coupon."""
    return await CouponService(db).create_coupon(data)


@router.put(
    "/coupons/{coupon_id}",
    response_model=CouponResponse,
    summary="Update coupon",
)
async def update_coupon(
    coupon_id: UUID,
    data: CouponUpdate,
    admin: AdminActor,
    db: DatabaseSession,
) -> CouponResponse:
    """Edit a coupon's name, discount or expiration."""
    return await CouponService(db).update_coupon(coupon_id, data)


@router.patch(
    "/coupons/{coupon_id}/active",
    response_model=CouponResponse,
    summary="Activate or deactivate coupon",
)
async def set_coupon_active(
    coupon_id: UUID,
    data: CouponActiveUpdate,
    admin: AdminActor,
    db: DatabaseSession,
) -> CouponResponse:
    """Toggle a coupon; an expired coupon cannot be reactivated."""
    return await CouponService(db).set_active(coupon_id, data.is_active)
