"""
Security utilities.

bcrypt password hashing, the access/refresh JWT pair and the Redis keys
that track live refresh tokens and revoked access tokens.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt as _bcrypt
from jose import JWTError, jwt

from trackspace.core.config import settings

ACCESS = "access"
REFRESH = "refresh"

# bcrypt ignores everything past 72 bytes
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """bcrypt hash with the configured BCRYPT_ROUNDS cost."""
    salt = _bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return _bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return _bcrypt.checkpw(
        plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed_password.encode("utf-8")
    )


# ---------------------------------------------------------------------------
# JWT tokens
# ---------------------------------------------------------------------------

def _encode(user_id: str, token_type: str, lifetime: timedelta) -> tuple[str, str]:
    issued = datetime.now(UTC)
    jti = str(uuid.uuid4())
    claims: dict[str, Any] = {
        "sub": user_id,
        "jti": jti,
        "type": token_type,
        "iat": issued,
        "exp": issued + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM), jti


def _decode(token: str, token_type: str) -> dict[str, Any]:
    claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if claims.get("type") != token_type:
        raise JWTError(f"Expected a {token_type} token")
    return claims


def create_access_token(user_id: str) -> str:
    """Short-lived bearer token; its jti is what logout blacklists."""
    token, _ = _encode(
        user_id, ACCESS, timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return token


def create_refresh_token(user_id: str) -> tuple[str, str]:
    """
    Long-lived token used only at /auth/refresh.

    Returns (token, jti); the jti is stored in Redis so the token can be
    rotated and revoked.
    """
    return _encode(user_id, REFRESH, timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS))


def decode_access_token(token: str) -> dict[str, Any]:
    """Raises JWTError for a bad signature, an expired token or a refresh token."""
    return _decode(token, ACCESS)


def decode_refresh_token(token: str) -> dict[str, Any]:
    return _decode(token, REFRESH)


def access_token_jti(token: str) -> str:
    return decode_access_token(token).get("jti", "")


# ---------------------------------------------------------------------------
# Redis keys
# ---------------------------------------------------------------------------

def refresh_token_redis_key(user_id: str, jti: str) -> str:
    return f"refresh:{user_id}:{jti}"


def refresh_token_redis_pattern(user_id: str) -> str:
    """Matches every live refresh token of one user."""
    return f"refresh:{user_id}:*"


def blacklist_redis_key(jti: str) -> str:
    return f"blacklist:{jti}"
