"""Coupon management and application."""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from telecare.core.slots import as_utc
from telecare.models.coupons import coupons
from telecare.schemas.coupons import (
    CouponCreate,
    CouponResponse,
    CouponUpdate,
)

logger = structlog.get_logger(__name__)


def apply_discount(fees: int, percent: int) -> int:
    """Return ``fees`` reduced by ``percent`` percent, rounded half-up."""
    discounted = Decimal(fees) * (Decimal(100) - Decimal(percent)) / Decimal(100)
    return int(discounted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CouponService:
    """Service for discount coupons."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _get_row(self, coupon_id: UUID) -> dict:
        result = await self.db.execute(select(coupons).where(coupons.c.id == coupon_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Coupon not found")
        return dict(row)

    async def create_coupon(self, data: CouponCreate) -> CouponResponse:
        """
        Create a coupon.

        Raises:
            ConflictException: If the code is already in use
        """
        values = data.model_dump(exclude_none=True)
        try:
            result = await self.db.execute(insert(coupons).values(**values).returning(coupons))
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("Coupon code already exists")

        row = result.mappings().one()
        logger.info("coupon_created", code=row["code"], discount=row["discount"])
        return CouponResponse.model_validate(dict(row))

    async def update_coupon(self, coupon_id: UUID, data: CouponUpdate) -> CouponResponse:
        """
        Edit name, discount or expiration of a coupon.

        Raises:
            NotFoundException: If the coupon does not exist
            ValidationException: If the new expiration is not after the stored start date
        """
        row = await self._get_row(coupon_id)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            return CouponResponse.model_validate(row)
        if data.expiration_date and as_utc(data.expiration_date) <= as_utc(row["start_date"]):
            raise ValidationException("Expiration date must be after the start date.")

        update_data["updated_at"] = datetime.now(UTC)
        result = await self.db.execute(
            update(coupons)
            .where(coupons.c.id == coupon_id)
            .values(**update_data)
            .returning(coupons)
        )
        row = result.mappings().first()
        if not row:
            await self.db.rollback()
            raise NotFoundException("Coupon not found")
        await self.db.commit()
        return CouponResponse.model_validate(dict(row))

    async def set_active(
        self, coupon_id: UUID, is_active: bool, now: datetime | None = None
    ) -> CouponResponse:
        """
        Activate or deactivate a coupon.

        Raises:
            BadRequestException: If activating a coupon that has expired
        """
        now = as_utc(now or datetime.now(UTC))
        row = await self._get_row(coupon_id)
        if is_active and as_utc(row["expiration_date"]) <= now:
            raise BadRequestException("Expiration date should be in the future.")

        result = await self.db.execute(
            update(coupons)
            .where(coupons.c.id == coupon_id)
            .values(is_active=is_active, updated_at=now)
            .returning(coupons)
        )
        await self.db.commit()
        return CouponResponse.model_validate(dict(result.mappings().one()))

    async def list_coupons(self) -> list[CouponResponse]:
        """All coupons, newest first (admin view)."""
        result = await self.db.execute(select(coupons).order_by(coupons.c.created_at.desc()))
        return [CouponResponse.model_validate(dict(row)) for row in result.mappings().all()]

    async def list_available_coupons(self, now: datetime | None = None) -> list[CouponResponse]:
        """Coupons a patient can apply right now."""
        now = as_utc(now or datetime.now(UTC))
        query = (
            select(coupons)
            .where(
                and_(
                    coupons.c.is_active.is_(True),
                    coupons.c.start_date <= now,
                    coupons.c.expiration_date > now,
                )
            )
            .order_by(coupons.c.expiration_date)
        )
        result = await self.db.execute(query)
        return [CouponResponse.model_validate(dict(row)) for row in result.mappings().all()]

    async def get_applicable_coupon(self, code: str, now: datetime | None = None) -> dict:
        """
        Look up a coupon for use at booking time.

        Expiry is checked before the active flag, so an expired coupon is
        rejected even if it was never deactivated.

        Raises:
            BadRequestException: If the code is unknown, expired, not yet
                started, or inactive
        """
        now = as_utc(now or datetime.now(UTC))
        result = await self.db.execute(
            select(coupons).where(coupons.c.code == code.strip().upper())
        )
        row = result.mappings().first()
        if not row:
            raise BadRequestException("Invalid coupon code")
        if as_utc(row["expiration_date"]) <= now:
            raise BadRequestException("Coupon has expired")
        if as_utc(row["start_date"]) > now:
            raise BadRequestException("Coupon is not valid yet")
        if not row["is_active"]:
            raise BadRequestException("Coupon is not active")
        return dict(row)
