"""
Authentication and account schemas.

Request/response models for /auth endpoints, including ownership transfer
and account deletion.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

from trackspace.models.user import ContextType


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    display_name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Display name must be at least 2 characters")
        return v

    @field_validator("password")
    @classmethod
    def password_must_contain_number(cls, v: str) -> str:
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one number")
        return v


# ---------------------------------------------------------------------------
# Login / tokens
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    email: EmailStr
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    """Response for register, login and token refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token TTL in seconds")


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str


# ---------------------------------------------------------------------------
# User representations
# ---------------------------------------------------------------------------

class UserSummaryResponse(BaseModel):
    """Minimal user info embedded in other responses."""

    id: UUID
    display_name: str
    email: str
    avatar_url: str | None = None

    model_config = {"from_attributes": True}


class ContextRef(BaseModel):
    type: ContextType
    id: UUID


class MeResponse(BaseModel):
    """Response for GET /auth/me."""

    id: UUID
    email: str
    display_name: str
    avatar_url: str | None
    email_verified: bool
    created_at: datetime
    last_active_context: ContextRef | None = None


class ProfileUpdateRequest(BaseModel):
    """
    Request body for PATCH /auth/profile.

    Only fields present in the body are applied; send null to clear the avatar.
    """

    display_name: str | None = Field(
        default=None, max_length=100, validation_alias=AliasChoices("display_name", "name")
    )
    avatar_url: str | None = Field(
        default=None, max_length=500, validation_alias=AliasChoices("avatar_url", "avatar")
    )


# ---------------------------------------------------------------------------
# Ownership transfer / account deletion
# ---------------------------------------------------------------------------

class TransferOwnershipRequest(BaseModel):
    """Request body for POST /auth/transfer-ownership."""

    organization_id: UUID = Field(
        validation_alias=AliasChoices("organization_id", "organizationId")
    )
    new_owner_id: UUID = Field(validation_alias=AliasChoices("new_owner_id", "newOwnerId"))


class TransferOwnershipResponse(BaseModel):
    organization_id: UUID
    previous_owner_id: UUID
    new_owner_id: UUID


class OwnedOrganizationResponse(BaseModel):
    """An organization the caller owns, with the members ownership could go to."""

    id: UUID
    name: str
    slug: str
    members: list[UserSummaryResponse]


class DeletionAssessmentResponse(BaseModel):
    can_delete: bool
    owned_organizations: list[OwnedOrganizationResponse]
    organizations_count: int
    workspaces_count: int
