"""Patient-facing coupon endpoints."""

from fastapi import APIRouter

from telecare.dependencies import CurrentUser, DatabaseSession
from telecare.schemas.coupons import CouponResponse
from telecare.services.coupon_service import CouponService

router = APIRouter()


@router.get(
    "",
    response_model=list[CouponResponse],
    summary="List available coupons",
)
async def list_available_coupons(
    current_user: CurrentUser,
    db: DatabaseSession,
) -> list[CouponResponse]:
    """Active, unexpired coupons that can be applied at booking."""
    return await CouponService(db).list_available_coupons()
