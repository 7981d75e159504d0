"""
Workspace schemas.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from trackspace.models.user import ContextType
from trackspace.models.workspace import MemberRole
from trackspace.schemas.auth import UserSummaryResponse

HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class WorkspaceCreateRequest(BaseModel):
    """Request body for POST /workspaces."""

    name: str = Field(max_length=100)
    description: str | None = Field(default=None, max_length=500)
    color: str = Field(default="#ff6b35", pattern=HEX_COLOR)
    context_type: ContextType = Field(validation_alias=AliasChoices("context_type", "contextType"))
    context_id: UUID = Field(validation_alias=AliasChoices("context_id", "contextId"))
    members: list[UUID] = Field(default_factory=list)


class WorkspaceUpdateRequest(BaseModel):
    """Request body for PATCH /workspaces/{workspace_id}."""

    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    color: str | None = Field(default=None, pattern=HEX_COLOR)


class WorkspaceMemberAddRequest(BaseModel):
    user_id: UUID = Field(validation_alias=AliasChoices("user_id", "userId"))


class MemberResponse(BaseModel):
    """A {user, role} membership entry; owners appear once, with role=owner."""

    user: UserSummaryResponse
    role: MemberRole


class WorkspaceResponse(BaseModel):
    id: UUID
    name: str
    description: str | None
    color: str
    context_type: ContextType
    context_id: UUID
    owner_id: UUID | None
    members: list[MemberResponse]
    created_at: datetime
    updated_at: datetime
