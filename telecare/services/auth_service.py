"""Authentication service for Firebase and JWT."""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.config import settings
from telecare.core.exceptions import ForbiddenException, UnauthorizedException
from telecare.core.firebase import verify_firebase_token
from telecare.core.redis_client import CacheManager
from telecare.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from telecare.schemas.auth import Token
from telecare.schemas.users import UserCreate
from telecare.services.user_service import UserService

logger = structlog.get_logger(__name__)


class AuthService:
    """Authentication service for handling Firebase and JWT operations."""

    def __init__(self, cache_manager: CacheManager):
        """Initialize auth service with cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _blacklist_key(token: str) -> str:
        return f"blacklist:{token}"

    async def verify_firebase_id_token(self, id_token: str) -> dict:
        """
        Verify Firebase ID token and extract user information.

        Raises:
            UnauthorizedException: If token verification fails
        """
        try:
            return await verify_firebase_token(id_token)
        except ValueError as e:
            raise UnauthorizedException(str(e))

    async def handle_firebase_login(
        self, firebase_token_data: dict, db: AsyncSession
    ) -> tuple[dict, Token]:
        """
        Handle Firebase login: create or get user and generate tokens.

        Args:
            firebase_token_data: Decoded Firebase token with user info
            db: Database session

        Returns:
            Tuple of (user dict, token pair)

        Raises:
            UnauthorizedException: If the token carries no email
            ForbiddenException: If the account is blocked
        """
        firebase_uid = firebase_token_data["uid"]
        email = firebase_token_data.get("email")

        if not email:
            raise UnauthorizedException("Email is required from Firebase token")

        user_data = UserCreate(
            firebase_uid=firebase_uid,
            email=email,
            email_verified=firebase_token_data.get("email_verified", False),
            full_name=firebase_token_data.get("name", email),
            photo_url=firebase_token_data.get("picture"),
        )

        user_service = UserService(self.cache)
        user = await user_service.get_or_create_user(
            db=db,
            firebase_uid=firebase_uid,
            email=email,
            user_data=user_data,
        )

        if user["is_blocked"]:
            logger.warning("blocked_user_login_attempt", user_id=str(user["id"]))
            raise ForbiddenException("User is blocked")

        tokens = self.create_tokens(str(user["id"]), user["role"])
        logger.info("user_logged_in", user_id=str(user["id"]), role=user["role"])
        return user, tokens

    def create_tokens(self, user_id: str, role: str) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user_id: User identifier (internal UUID)
            role: Role claim (patient, doctor or admin)

        Returns:
            Token pair (access and refresh)
        """
        claims = {"sub": user_id, "role": role}
        return Token(
            access_token=create_access_token(data=claims),
            refresh_token=create_refresh_token(data=claims),
            token_type="bearer",
        )

    async def refresh_access_token(self, refresh_token: str, db: AsyncSession) -> Token:
        """
        Rotate a refresh token into a new token pair.

        The presented refresh token is revoked so it can be used only once.

        Raises:
            UnauthorizedException: If the refresh token is invalid, revoked, or
                its user no longer exists
            ForbiddenException: If the user has been blocked
        """
        payload = decode_refresh_token(refresh_token)
        if payload is None or payload.get("sub") is None:
            raise UnauthorizedException("Invalid refresh token")

        if self.cache.exists(self._blacklist_key(refresh_token)):
            raise UnauthorizedException("Token has been revoked")

        try:
            user_id = UUID(payload["sub"])
        except ValueError:
            raise UnauthorizedException("Invalid refresh token")

        user = await UserService(self.cache).get_user_by_id(db, user_id)
        if not user:
            raise UnauthorizedException("User not found")
        if user["is_blocked"]:
            raise ForbiddenException("User is blocked")
        if not user["is_active"]:
            raise ForbiddenException("User account is deactivated")

        self.revoke_token(refresh_token)
        return self.create_tokens(str(user_id), user["role"])

    def revoke_token(self, token: str, ttl: int | None = None) -> None:
        """Revoke a refresh token by adding it to the blacklist until it would expire."""
        self.cache.set(
            self._blacklist_key(token),
            "1",
            ttl=ttl or settings.refresh_token_expire_days * 86400,
        )
