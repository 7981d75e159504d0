"""
Project schemas.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from trackspace.models.project import ProjectStatus
from trackspace.schemas.workspace import MemberResponse


class ProjectCreateRequest(BaseModel):
    """Request body for POST /projects."""

    workspace_id: UUID = Field(validation_alias=AliasChoices("workspace_id", "workspace"))
    name: str = Field(max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus = ProjectStatus.planning
    start_date: date | None = Field(default=None, validation_alias=AliasChoices("start_date", "startDate"))
    end_date: date | None = Field(default=None, validation_alias=AliasChoices("end_date", "endDate"))
    tags: list[str] = Field(default_factory=list)
    members: list[UUID] = Field(default_factory=list)


class ProjectUpdateRequest(BaseModel):
    """
    Request body for PATCH /projects/{project_id}.

    Only fields present in the body are applied; send null to clear a date.
    """

    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus | None = None
    start_date: date | None = Field(default=None, validation_alias=AliasChoices("start_date", "startDate"))
    end_date: date | None = Field(default=None, validation_alias=AliasChoices("end_date", "endDate"))
    tags: list[str] | None = None


class ProjectMemberAddRequest(BaseModel):
    """Request body for POST /projects/{project_id}/members."""

    member_id: UUID = Field(validation_alias=AliasChoices("member_id", "memberId"))


class ProjectResponse(BaseModel):
    id: UUID
    workspace_id: UUID
    name: str
    description: str | None
    status: ProjectStatus
    start_date: date | None
    end_date: date | None
    tags: list[str]
    owner_id: UUID | None
    members: list[MemberResponse]
    created_at: datetime
    updated_at: datetime
