"""User schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    """Schema for creating a user from a verified Firebase identity."""

    firebase_uid: str = Field(..., description="Firebase user ID")
    email: EmailStr
    email_verified: bool = False
    full_name: str | None = None
    photo_url: str | None = None
    phone: str | None = Field(None, max_length=20)


class UserBlockUpdate(BaseModel):
    """Admin request to block or unblock a user."""

    is_blocked: bool


class AdminUserResponse(BaseModel):
    """User as shown to administrators."""

    id: UUID
    email: str
    full_name: str | None = None
    phone: str | None = None
    role: str
    is_active: bool
    is_blocked: bool
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}
