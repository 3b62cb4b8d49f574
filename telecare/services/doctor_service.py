"""Doctor service for business logic."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import ConflictException, NotFoundException
from telecare.core.lifecycle import Actor
from telecare.core.redis_client import CacheManager
from telecare.models.doctors import doctors
from telecare.models.users import users
from telecare.schemas.doctors import (
    DoctorCreate,
    DoctorVerificationStatus,
    DoctorVerificationUpdate,
)
from telecare.services.user_service import UserService

logger = structlog.get_logger(__name__)


class DoctorService:
    """Service for doctor operations."""

    # Cache TTL in seconds
    DOCTOR_CACHE_TTL = 900  # 15 minutes for individual doctors
    DOCTOR_LIST_CACHE_TTL = 300  # 5 minutes for lists

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_doctor_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for doctor."""
        return f"doctor:{doctor_id}"

    @staticmethod
    def _get_list_cache_key(page: int, page_size: int, specialization: str | None) -> str:
        return f"doctor:list:{page}:{page_size}:{specialization or '*'}"

    async def create_doctor(self, db: AsyncSession, doctor_data: DoctorCreate) -> dict:
        """
        Create a doctor profile and promote the user to the doctor role.

        Raises:
            NotFoundException: If the user does not exist
            ConflictException: If the user already has a doctor profile
        """
        user = (
            await db.execute(select(users.c.id).where(users.c.id == doctor_data.user_id))
        ).first()
        if not user:
            raise NotFoundException("User not found")

        if await self.get_doctor_by_user_id(db, doctor_data.user_id):
            raise ConflictException("User already has a doctor profile")

        status = (
            DoctorVerificationStatus.APPROVED
            if doctor_data.is_verified
            else DoctorVerificationStatus.PENDING
        )
        query = (
            doctors.insert()
            .values(**doctor_data.model_dump(), verification_status=status.value)
            .returning(doctors)
        )
        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            raise ValueError("Failed to create doctor")

        await UserService(self.cache).set_role(db, doctor_data.user_id, Actor.DOCTOR.value)
        await db.commit()

        self._invalidate_listings()

        logger.info("doctor_created", doctor_id=str(doctor["id"]), user_id=str(doctor["user_id"]))
        return dict(doctor)

    def _invalidate_listings(self) -> None:
        if self.cache:
            self.cache.delete_pattern("doctor:list:*")

    async def set_verification(
        self, db: AsyncSession, doctor_id: UUID, data: DoctorVerificationUpdate
    ) -> dict:
        """
        Approve or reject a doctor registration.

        A rejected doctor disappears from the listing and cannot be booked;
        appointments already made are left to run their course.

        Raises:
            NotFoundException: If the doctor does not exist
        """
        result = await db.execute(
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(
                verification_status=data.status.value,
                is_verified=data.is_verified,
                updated_at=datetime.now(UTC),
            )
            .returning(doctors)
        )
        doctor = result.mappings().first()
        if not doctor:
            raise NotFoundException("Doctor not found")
        await db.commit()

        if self.cache:
            self.cache.delete(self._get_doctor_cache_key(doctor_id))
        self._invalidate_listings()

        logger.info(
            "doctor_verification_changed", doctor_id=str(doctor_id), status=data.status.value
        )
        return dict(doctor)

    async def get_doctor_by_id(self, db: AsyncSession, doctor_id: UUID) -> dict | None:
        """Get doctor by ID with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_doctor_cache_key(doctor_id))
            if cached:
                return cached

        query = select(doctors).where(doctors.c.id == doctor_id)
        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            return None

        doctor_dict = dict(doctor)

        if self.cache:
            self.cache.set_json(
                self._get_doctor_cache_key(doctor_id), doctor_dict, ttl=self.DOCTOR_CACHE_TTL
            )

        return doctor_dict

    async def get_doctor_by_user_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get doctor by user ID."""
        query = select(doctors).where(doctors.c.user_id == user_id)
        result = await db.execute(query)
        doctor = result.mappings().first()

        return dict(doctor) if doctor else None

    async def get_doctors(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        specialization: str | None = None,
    ) -> dict:
        """List verified doctors with optional specialization filter."""
        cache_key = self._get_list_cache_key(page, page_size, specialization)
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached:
                return cached

        conditions = [doctors.c.is_verified.is_(True)]
        if specialization:
            conditions.append(doctors.c.specialization.ilike(f"%{specialization}%"))

        count_query = select(func.count()).select_from(doctors).where(and_(*conditions))
        total = (await db.execute(count_query)).scalar() or 0

        query = (
            select(doctors)
            .where(and_(*conditions))
            .order_by(doctors.c.full_name)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        result = await db.execute(query)

        listing = {
            "total": total,
            "page": page,
            "page_size": page_size,
            "items": [dict(row) for row in result.mappings().all()],
        }

        if self.cache:
            self.cache.set_json(cache_key, listing, ttl=self.DOCTOR_LIST_CACHE_TTL)

        return listing
