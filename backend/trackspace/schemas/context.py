"""
Context schemas.

Covers the active-context endpoints, the personal space and context membership listings.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from trackspace.models.member import OrgRole
from trackspace.models.user import ContextType
from trackspace.schemas.auth import UserSummaryResponse
from trackspace.schemas.workspace import WorkspaceResponse


# ---------------------------------------------------------------------------
# Active context
# ---------------------------------------------------------------------------

class SwitchContextRequest(BaseModel):
    """Request body for PUT /contexts/context."""

    type: ContextType
    id: UUID


class ContextResponse(BaseModel):
    """The resolved active context and the caller's role in it."""

    type: ContextType
    id: UUID
    name: str
    role: OrgRole


class PersonalSpaceResponse(BaseModel):
    id: UUID
    user_id: UUID
    created_at: datetime
    workspaces: list[WorkspaceResponse]


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class ContextMemberResponse(BaseModel):
    user: UserSummaryResponse
    role: OrgRole
    joined_at: datetime | None = None


class ContextMembersResponse(BaseModel):
    """Response for GET /contexts/members."""

    context: ContextResponse
    members: list[ContextMemberResponse]
