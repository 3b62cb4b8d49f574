"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

import redis
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.lifecycle import Actor
from telecare.core.payments import PaymentGateway, get_payment_gateway
from telecare.core.redis_client import CacheManager, get_redis_client
from telecare.core.security import decode_access_token
from telecare.database import get_db
from telecare.schemas.auth import CurrentActor
from telecare.services.doctor_service import DoctorService
from telecare.services.user_service import UserService

# Security
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        return UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format")


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(redis_client)


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
) -> dict:
    """
    Get current user from database.

    Raises:
        HTTPException: 401 if the user no longer exists, 403 if blocked or
            deactivated
    """
    user = await UserService(cache_manager).get_user_by_id(db, user_id)

    if not user:
        raise _credentials_error("User not found")

    if user["is_blocked"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is blocked",
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


async def get_current_actor(
    current_user: Annotated[dict, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CurrentActor:
    """The caller as the appointment lifecycle sees it (role plus doctor profile)."""
    role = Actor(current_user["role"])
    user_id = UUID(str(current_user["id"]))
    doctor_id = None
    if role == Actor.DOCTOR:
        doctor = await DoctorService().get_doctor_by_user_id(db, user_id)
        if doctor:
            doctor_id = doctor["id"]
    return CurrentActor(user_id=user_id, role=role, doctor_id=doctor_id)


def _require_role(role: Actor, detail: str):
    async def dependency(
        actor: Annotated[CurrentActor, Depends(get_current_actor)],
    ) -> CurrentActor:
        if actor.role != role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        if role == Actor.DOCTOR and actor.doctor_id is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Doctor profile not found",
            )
        return actor

    return dependency


require_admin = _require_role(Actor.ADMIN, "Admin access required")
require_doctor = _require_role(Actor.DOCTOR, "Doctor access required")
require_patient = _require_role(Actor.PATIENT, "Patient access required")


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentActorDep = Annotated[CurrentActor, Depends(get_current_actor)]
AdminActor = Annotated[CurrentActor, Depends(require_admin)]
DoctorActor = Annotated[CurrentActor, Depends(require_doctor)]
PatientActor = Annotated[CurrentActor, Depends(require_patient)]
PaymentGatewayDep = Annotated[PaymentGateway, Depends(get_payment_gateway)]
