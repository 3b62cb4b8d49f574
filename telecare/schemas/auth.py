"""Authentication schemas."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from telecare.core.lifecycle import Actor


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class FirebaseAuthRequest(BaseModel):
    """Firebase ID token authentication request."""

    id_token: str = Field(..., description="Firebase ID token from the web or mobile client")


class UserResponse(BaseModel):
    """User response schema."""

    id: str
    email: EmailStr
    name: str
    picture: str | None = None
    role: str
    is_active: bool = True

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    """Login response with tokens and user info."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class CurrentActor(BaseModel):
    """The authenticated caller as the lifecycle sees it."""

    user_id: UUID
    role: Actor
    doctor_id: UUID | None = None
