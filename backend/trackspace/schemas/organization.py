"""
Organization schemas.

Request/response models for organization creation and membership
management under /contexts/organizations.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from trackspace.models.member import OrgRole


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

class OrganizationCreateRequest(BaseModel):
    """Request body for POST /contexts/organizations."""

    name: str = Field(max_length=100)
    description: str | None = Field(default=None, max_length=500)


class OrganizationResponse(BaseModel):
    """Organization as seen by one of its members."""

    id: UUID
    name: str
    slug: str
    description: str | None
    role: OrgRole
    member_count: int
    created_at: datetime


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class OrgMemberAddRequest(BaseModel):
    """Request body for POST /contexts/organizations/{org_id}/members."""

    email: EmailStr
    role: str = Field(default="member", pattern="^(admin|member)$")


class OrgMemberRoleUpdateRequest(BaseModel):
    """Request body for PATCH /contexts/organizations/{org_id}/members/{user_id}."""

    role: str = Field(pattern="^(admin|member)$")


class OrgMemberResponse(BaseModel):
    user_id: UUID
    display_name: str
    email: str
    avatar_url: str | None
    role: OrgRole
    joined_at: datetime
