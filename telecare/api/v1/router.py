"""API v1 router configuration."""

from fastapi import APIRouter

from telecare.api.v1.endpoints import (
    admin,
    appointments,
    auth,
    bookings,
    chats,
    coupons,
    doctors,
    health,
    prescriptions,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(doctors.router, prefix="/doctors", tags=["Doctors"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(prescriptions.router, prefix="/appointments", tags=["Prescriptions"])
api_router.include_router(coupons.router, prefix="/coupons", tags=["Coupons"])
api_router.include_router(chats.router, prefix="/chats", tags=["Chats"])
api_router.include_router(admin.router, tags=["Admin"])
