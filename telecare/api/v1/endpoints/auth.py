"""Authentication endpoints."""

from fastapi import APIRouter, status

from telecare.dependencies import CacheManagerDep, DatabaseSession
from telecare.schemas.auth import (
    FirebaseAuthRequest,
    LoginResponse,
    Token,
    TokenRefresh,
    UserResponse,
)
from telecare.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/firebase/verify",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Firebase ID token verification",
)
async def firebase_verify(
    request: FirebaseAuthRequest,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> LoginResponse:
    """
    Exchange a Firebase ID token for API tokens.

    The user is created on first login. Blocked accounts get 403.

    Args:
        request: Firebase ID token
        db: Database session
        cache_manager: Cache manager

    Returns:
        Access token, refresh token, and user information
    """
    auth_service = AuthService(cache_manager)
    firebase_token_data = await auth_service.verify_firebase_id_token(request.id_token)
    user, tokens = await auth_service.handle_firebase_login(firebase_token_data, db)

    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user=UserResponse(
            id=str(user["id"]),
            email=user["email"],
            name=user["full_name"] or user["email"],
            picture=user["photo_url"],
            role=user["role"],
            is_active=user["is_active"],
        ),
    )


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> Token:
    """
    Rotate a refresh token into a new token pair.

    Returns 401 for an invalid or revoked token and 403 if the user has
    been blocked since logging in.
    """
    return await AuthService(cache_manager).refresh_access_token(request.refresh_token, db)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout and revoke tokens",
)
async def logout(request: TokenRefresh, cache_manager: CacheManagerDep) -> None:
    """Revoke the refresh token."""
    AuthService(cache_manager).revoke_token(request.refresh_token)
