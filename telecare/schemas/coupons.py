"""Coupon schemas for request/response validation."""

from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

from telecare.core.slots import as_utc


def _require_future(v: datetime) -> datetime:
    v = as_utc(v)
    if v <= datetime.now(UTC):
        raise ValueError("Expiration date should be in the future.")
    return v


def _check_discount(v: int) -> int:
    if v <= 0:
        raise ValueError("Discount must be greater than 0.")
    if v > 100:
        raise ValueError("Discount cannot exceed 100.")
    return v


class CouponCreate(BaseModel):
    """Schema for creating a coupon."""

    name: str
    code: str
    discount: int
    start_date: datetime | None = None
    expiration_date: datetime
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Coupon name is required.")
        return v.strip()

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Coupon code is required.")
        return v.strip().upper()

    @field_validator("discount")
    @classmethod
    def validate_discount(cls, v: int) -> int:
        return _check_discount(v)

    @field_validator("expiration_date")
    @classmethod
    def validate_expiration(cls, v: datetime) -> datetime:
        return _require_future(v)

    @field_validator("start_date")
    @classmethod
    def normalize_start(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else v

    @model_validator(mode="after")
    def validate_window(self) -> "CouponCreate":
        """Expiration must come after the start date."""
        if self.start_date and self.start_date >= self.expiration_date:
            raise ValueError("Expiration date must be after the start date.")
        return self


class CouponUpdate(BaseModel):
    """Schema for editing a coupon; omitted fields are unchanged."""

    name: str | None = None
    discount: int | None = None
    expiration_date: datetime | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Coupon name is required.")
        return v.strip() if v else v

    @field_validator("discount")
    @classmethod
    def validate_discount(cls, v: int | None) -> int | None:
        return _check_discount(v) if v is not None else v

    @field_validator("expiration_date")
    @classmethod
    def validate_expiration(cls, v: datetime | None) -> datetime | None:
        return _require_future(v) if v is not None else v


class CouponActiveUpdate(BaseModel):
    """Toggle a coupon on or off."""

    is_active: bool


class CouponResponse(BaseModel):
    """Schema for coupon response."""

    id: UUID
    name: str
    code: str
    discount: int
    start_date: datetime
    expiration_date: datetime
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
