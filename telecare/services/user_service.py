"""User service for business logic."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import NotFoundException
from telecare.core.redis_client import CacheManager
from telecare.models.users import users
from telecare.schemas.users import UserCreate


class UserService:
    """Service for user operations."""

    # Cache TTL in seconds (30 minutes for user profiles)
    USER_CACHE_TTL = 1800

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_user_cache_key(user_id: UUID) -> str:
        """Generate cache key for user."""
        return f"user:{user_id}"

    def invalidate(self, user_id: UUID) -> None:
        """Drop the cached profile so the next read sees fresh state."""
        if self.cache:
            self.cache.delete(self._get_user_cache_key(user_id))

    async def create_user(self, db: AsyncSession, user_data: UserCreate) -> dict:
        """Create a new user."""
        query = (
            users.insert()
            .values(
                firebase_uid=user_data.firebase_uid,
                email=user_data.email,
                email_verified=user_data.email_verified,
                full_name=user_data.full_name,
                photo_url=user_data.photo_url,
                phone=user_data.phone,
                last_login_at=datetime.now(UTC),
            )
            .returning(users)
        )

        result = await db.execute(query)
        await db.commit()
        user = result.mappings().first()

        if not user:
            raise ValueError("Failed to create user")

        return dict(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID with caching."""
        if self.cache:
            cached_user = self.cache.get_json(self._get_user_cache_key(user_id))
            if cached_user:
                return cached_user

        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()

        if not user:
            return None

        user_dict = dict(user)

        if self.cache:
            self.cache.set_json(
                self._get_user_cache_key(user_id), user_dict, ttl=self.USER_CACHE_TTL
            )

        return user_dict

    async def get_user_by_firebase_uid(self, db: AsyncSession, firebase_uid: str) -> dict | None:
        """Get user by Firebase UID."""
        query = select(users).where(users.c.firebase_uid == firebase_uid)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_or_create_user(
        self, db: AsyncSession, firebase_uid: str, email: str, user_data: UserCreate | None = None
    ) -> dict:
        """Get existing user or create a new one."""
        user = await self.get_user_by_firebase_uid(db, firebase_uid)

        if user:
            await self.update_last_login(db, user["id"])
            return user

        if not user_data:
            user_data = UserCreate(firebase_uid=firebase_uid, email=email, email_verified=True)

        return await self.create_user(db, user_data)

    async def update_last_login(self, db: AsyncSession, user_id: UUID) -> None:
        """Update user's last login timestamp."""
        query = update(users).where(users.c.id == user_id).values(last_login_at=datetime.now(UTC))
        await db.execute(query)
        await db.commit()

    async def set_role(self, db: AsyncSession, user_id: UUID, role: str) -> None:
        """Change a user's role without committing."""
        await db.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(role=role, updated_at=datetime.now(UTC))
        )
        self.invalidate(user_id)

    async def set_blocked(self, db: AsyncSession, user_id: UUID, is_blocked: bool) -> dict:
        """
        Block or unblock a user.

        A blocked user's next authenticated request is rejected with 403,
        which signs them out on every client.

        Raises:
            NotFoundException: If the user does not exist
        """
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(is_blocked=is_blocked, updated_at=datetime.now(UTC))
            .returning(users)
        )
        result = await db.execute(query)
        user = result.mappings().first()
        if not user:
            await db.rollback()
            raise NotFoundException("User not found")

        await db.commit()
        self.invalidate(user_id)
        return dict(user)
