"""
Authentication and account endpoints.

Register, login, logout, token refresh, me, ownership transfer and
account deletion.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.database import get_db
from trackspace.core.dependencies import (
    get_access_token,
    get_activity_pipeline,
    get_current_user,
    get_redis,
)
from trackspace.models.user import User
from trackspace.schemas.auth import (
    DeletionAssessmentResponse,
    LoginRequest,
    LogoutRequest,
    MeResponse,
    OwnedOrganizationResponse,
    ProfileUpdateRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    TransferOwnershipRequest,
    TransferOwnershipResponse,
)
from trackspace.services.account_service import AccountService
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.auth_service import AuthService
from trackspace.services.organization_service import OrganizationService

router = APIRouter()


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> AuthService:
    """Dependency that constructs AuthService."""
    return AuthService(db=db, redis=redis)


def get_account_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    pipeline: ActivityPipeline = Depends(get_activity_pipeline),
) -> AccountService:
    return AccountService(db=db, redis=redis, pipeline=pipeline)


def get_organization_service(
    db: AsyncSession = Depends(get_db),
    pipeline: ActivityPipeline = Depends(get_activity_pipeline),
) -> OrganizationService:
    return OrganizationService(db=db, pipeline=pipeline)


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """
    Create a new user account.

    - Email must be globally unique
    - Password must be min 8 chars and contain at least 1 number
    - Returns JWT access + refresh tokens on success
    """
    return await service.register(data)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
)
async def login(
    data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    return await service.login(data)


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
)
async def refresh(
    data: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """
    Exchange a valid refresh token for a new access + refresh token pair.

    Refresh tokens are rotated on every use.
    """
    return await service.refresh(data.refresh_token)


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------

@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout and revoke tokens",
)
async def logout(
    data: LogoutRequest,
    access_token: str = Depends(get_access_token),
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> None:
    """
    Logout the current user.

    - Blacklists the current access token JTI in Redis
    - Deletes the refresh token from Redis
    """
    await service.logout(access_token=access_token, refresh_token=data.refresh_token)


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get current user profile",
)
async def get_me(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    return await service.get_me(current_user)


@router.patch(
    "/profile",
    response_model=MeResponse,
    summary="Update display name or avatar",
)
async def update_profile(
    data: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    return await service.update_profile(current_user, data)


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------

@router.get(
    "/owned-organizations",
    response_model=list[OwnedOrganizationResponse],
    summary="List organizations the caller owns",
)
async def owned_organizations(
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> list[OwnedOrganizationResponse]:
    return await service.owned_organizations(current_user)


@router.post(
    "/transfer-ownership",
    response_model=TransferOwnershipResponse,
    summary="Transfer organization ownership to another member",
)
async def transfer_ownership(
    data: TransferOwnershipRequest,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> TransferOwnershipResponse:
    """
    Make another member the owner. The caller stays on as a member.
    """
    return await service.transfer_ownership(data.organization_id, data.new_owner_id, current_user)


# ---------------------------------------------------------------------------
# Account deletion
# ---------------------------------------------------------------------------

@router.get(
    "/deletion-assessment",
    response_model=DeletionAssessmentResponse,
    summary="Check whether the account can be deleted",
)
async def deletion_assessment(
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> DeletionAssessmentResponse:
    return await service.deletion_assessment(current_user)


@router.delete(
    "/delete-account",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete the current account",
)
async def delete_account(
    access_token: str = Depends(get_access_token),
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> None:
    """
    Delete the caller's account.

    Fails with 409 while the caller still owns an organization.
    """
    await service.delete_account(current_user, access_token)
