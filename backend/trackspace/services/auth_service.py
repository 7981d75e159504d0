"""
Authentication business logic.

Handles user registration, login, token refresh, logout and profile edits.
All business logic lives here; routers only handle HTTP concerns.
"""

from __future__ import annotations

import logging
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import HTTPException, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.config import settings
from trackspace.core.exceptions import AuthorizationError, ConflictError, ValidationError
from trackspace.core.security import (
    access_token_jti,
    blacklist_redis_key,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    refresh_token_redis_key,
    verify_password,
)
from trackspace.models.user import User
from trackspace.schemas.auth import (
    ContextRef,
    LoginRequest,
    MeResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)


def _invalid(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
    )


class AuthService:
    """Handles all authentication operations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis) -> None:
        self.db = db
        self.redis = redis

    # -----------------------------------------------------------------------
    # Register
    # -----------------------------------------------------------------------

    async def register(self, data: RegisterRequest) -> TokenResponse:
        """
        Register a new user.

        - Validates email uniqueness
        - Hashes password
        - Issues JWT tokens

        The personal space is created lazily on first use.
        """
        email = data.email.lower()
        existing = await self.db.scalar(select(User.id).where(User.email == email))
        if existing is not None:
            raise ConflictError("Email is already registered", code="EMAIL_TAKEN")

        user = User(
            email=email,
            password_hash=hash_password(data.password),
            display_name=data.display_name,
            email_verified=False,
        )
        self.db.add(user)
        await self.db.flush()  # Get user.id without committing

        return await self._issue_tokens(user)

    # -----------------------------------------------------------------------
    # Login
    # -----------------------------------------------------------------------

    async def login(self, data: LoginRequest) -> TokenResponse:
        """
        Authenticate user with email + password.

        Raises 401 for invalid credentials (never reveals which field is wrong).
        """
        user = await self.db.scalar(select(User).where(User.email == data.email.lower()))

        if user is None or user.password_hash is None:
            raise _invalid("INVALID_CREDENTIALS", "Invalid email or password")

        if not verify_password(data.password, user.password_hash):
            raise _invalid("INVALID_CREDENTIALS", "Invalid email or password")

        if not user.is_active:
            raise AuthorizationError("Account is disabled", code="ACCOUNT_DISABLED")

        return await self._issue_tokens(user)

    # -----------------------------------------------------------------------
    # Refresh
    # -----------------------------------------------------------------------

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """
        Exchange a valid refresh token for a new token pair.

        Rotates: the old refresh token is deleted from Redis.
        """
        try:
            payload = decode_refresh_token(refresh_token)
            user_id = UUID(payload.get("sub", ""))
        except (JWTError, ValueError):
            raise _invalid("INVALID_TOKEN", "Refresh token is invalid or expired")

        redis_key = refresh_token_redis_key(str(user_id), payload.get("jti", ""))
        if not await self.redis.exists(redis_key):
            raise _invalid("TOKEN_REVOKED", "Refresh token has been revoked")

        user = await self.db.scalar(select(User).where(User.id == user_id))
        if user is None or not user.is_active:
            raise _invalid("USER_NOT_FOUND", "User not found or inactive")

        await self.redis.delete(redis_key)
        return await self._issue_tokens(user)

    # -----------------------------------------------------------------------
    # Logout
    # -----------------------------------------------------------------------

    async def logout(self, access_token: str, refresh_token: str) -> None:
        """
        Logout user by:
        - Blacklisting the access token JTI
        - Deleting the refresh token from Redis
        """
        await self.redis.setex(
            blacklist_redis_key(access_token_jti(access_token)),
            settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "1",
        )

        try:
            payload = decode_refresh_token(refresh_token)
        except JWTError:
            # An expired refresh token has nothing left to revoke
            return
        await self.redis.delete(
            refresh_token_redis_key(payload.get("sub", ""), payload.get("jti", ""))
        )

    # -----------------------------------------------------------------------
    # Get current user (me)
    # -----------------------------------------------------------------------

    async def get_me(self, user: User) -> MeResponse:
        """Return current user profile with the last active context, if any."""
        last_context = None
        if user.last_context_type is not None and user.last_context_id is not None:
            last_context = ContextRef(type=user.last_context_type, id=user.last_context_id)
        return MeResponse(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            email_verified=user.email_verified,
            created_at=user.created_at,
            last_active_context=last_context,
        )

    async def update_profile(self, user: User, data: ProfileUpdateRequest) -> MeResponse:
        """
        Change the display name and/or avatar.

        The display name is what @mentions match against, so it can't be blank.
        """
        sent = data.model_fields_set
        if "display_name" in sent:
            name = (data.display_name or "").strip()
            if len(name) < 2:
                raise ValidationError(
                    "Display name must be at least 2 characters", code="NAME_REQUIRED"
                )
            user.display_name = name
        if "avatar_url" in sent:
            user.avatar_url = (data.avatar_url or "").strip() or None

        await self.db.flush()
        logger.info("Profile updated for user %s", user.id)
        return await self.get_me(user)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _issue_tokens(self, user: User) -> TokenResponse:
        """Create an access + refresh token pair and store the refresh JTI in Redis."""
        user_id = str(user.id)

        refresh_token, refresh_jti = create_refresh_token(user_id)
        access_token = create_access_token(user_id)

        ttl_seconds = settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
        await self.redis.setex(refresh_token_redis_key(user_id, refresh_jti), ttl_seconds, "1")

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
