"""
FastAPI dependency injection functions.

Provides Redis connections, the current user, the bearer token itself and
the notification enqueuer used by the activity pipeline.
"""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.config import settings
from trackspace.core.database import get_db
from trackspace.core.security import blacklist_redis_key, decode_access_token
from trackspace.models.user import User
from trackspace.services.activity_service import ActivityPipeline, NotificationEnqueuer

# ---------------------------------------------------------------------------
# HTTP Bearer scheme (auto_error=False so we can return custom 401)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """
    Return a shared async Redis client.

    Uses a module-level pool so connections are reused across requests.
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_pool


# ---------------------------------------------------------------------------
# Notification enqueuer
# ---------------------------------------------------------------------------

def get_notification_enqueuer() -> NotificationEnqueuer:
    """Return the callable that hands notification payloads to the worker queue."""
    from trackspace.workers.notification_tasks import enqueue_notification

    return enqueue_notification


def get_activity_pipeline(
    db: AsyncSession = Depends(get_db),
    enqueue: NotificationEnqueuer = Depends(get_notification_enqueuer),
) -> ActivityPipeline:
    """Activity pipeline bound to the request session."""
    return ActivityPipeline(db=db, enqueue=enqueue)


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Return the raw bearer token, or 401 if the header is missing."""
    if credentials is None:
        raise _unauthorized("MISSING_TOKEN", "Authorization header required")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> User:
    """
    Validate Bearer JWT and return the authenticated User.

    Raises 401 if:
    - No token provided
    - Token is invalid or expired
    - JTI is blacklisted
    - User does not exist, is inactive or was deleted
    """
    try:
        payload = decode_access_token(token)
        user_id = UUID(payload.get("sub", ""))
    except (JWTError, ValueError):
        raise _unauthorized("INVALID_TOKEN", "Token is invalid or expired")

    jti: str = payload.get("jti", "")

    if await redis.exists(blacklist_redis_key(jti)):
        raise _unauthorized("TOKEN_REVOKED", "Token has been revoked")

    user = await db.scalar(select(User).where(User.id == user_id))

    if user is None or not user.is_active:
        raise _unauthorized("USER_NOT_FOUND", "User not found or inactive")

    return user
