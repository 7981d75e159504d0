"""
Context endpoints.

Personal space, organizations and their members, the active-context
pointer, context member listings and user search.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.database import get_db
from trackspace.core.dependencies import get_activity_pipeline, get_current_user
from trackspace.models.user import ContextType, User
from trackspace.schemas.auth import UserSummaryResponse
from trackspace.schemas.context import (
    ContextMembersResponse,
    ContextResponse,
    PersonalSpaceResponse,
    SwitchContextRequest,
)
from trackspace.schemas.organization import (
    OrganizationCreateRequest,
    OrganizationResponse,
    OrgMemberAddRequest,
    OrgMemberResponse,
    OrgMemberRoleUpdateRequest,
)
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.context_service import ContextService
from trackspace.services.organization_service import OrganizationService
from trackspace.services.workspace_service import WorkspaceService

router = APIRouter()


def get_context_service(db: AsyncSession = Depends(get_db)) -> ContextService:
    return ContextService(db=db)


def get_workspace_service(db: AsyncSession = Depends(get_db)) -> WorkspaceService:
    return WorkspaceService(db=db)


def get_organization_service(
    db: AsyncSession = Depends(get_db),
    pipeline: ActivityPipeline = Depends(get_activity_pipeline),
) -> OrganizationService:
    return OrganizationService(db=db, pipeline=pipeline)


# ---------------------------------------------------------------------------
# Personal space
# ---------------------------------------------------------------------------

@router.get(
    "/personal-space",
    response_model=PersonalSpaceResponse,
    summary="Get (or create) the caller's personal space",
)
async def get_personal_space(
    current_user: User = Depends(get_current_user),
    contexts: ContextService = Depends(get_context_service),
    workspaces: WorkspaceService = Depends(get_workspace_service),
) -> PersonalSpaceResponse:
    """
    Return the personal space with its workspaces.

    Created on first access together with a "My Tasks" workspace.
    """
    space = await contexts.get_or_create_personal_space(current_user)
    return PersonalSpaceResponse(
        id=space.id,
        user_id=space.user_id,
        created_at=space.created_at,
        workspaces=await workspaces.list_workspaces(current_user, ContextType.personal, space.id),
    )


# ---------------------------------------------------------------------------
# Active context
# ---------------------------------------------------------------------------

@router.put(
    "/context",
    response_model=ContextResponse,
    summary="Switch the active context",
)
async def switch_context(
    data: SwitchContextRequest,
    current_user: User = Depends(get_current_user),
    service: ContextService = Depends(get_context_service),
) -> ContextResponse:
    resolved = await service.switch_context(current_user, data.type, data.id)
    return resolved.to_response()


# ---------------------------------------------------------------------------
# Members / user search
# ---------------------------------------------------------------------------

@router.get(
    "/members",
    response_model=ContextMembersResponse,
    summary="List members of a context",
)
async def list_context_members(
    context_type: ContextType | None = Query(default=None, alias="contextType"),
    context_id: UUID | None = Query(default=None, alias="contextId"),
    current_user: User = Depends(get_current_user),
    service: ContextService = Depends(get_context_service),
) -> ContextMembersResponse:
    return await service.list_members(current_user, context_type, context_id)


@router.get(
    "/users/search",
    response_model=list[UserSummaryResponse],
    summary="Search users by name or email",
)
async def search_users(
    q: str = Query(default="", max_length=100),
    context_type: ContextType | None = Query(default=None, alias="contextType"),
    context_id: UUID | None = Query(default=None, alias="contextId"),
    current_user: User = Depends(get_current_user),
    service: ContextService = Depends(get_context_service),
) -> list[UserSummaryResponse]:
    """
    Up to ten matches. With a context, only its members are searched.
    """
    return await service.search_users(current_user, q, context_type, context_id)


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

@router.get(
    "/organizations",
    response_model=list[OrganizationResponse],
    summary="List the caller's organizations",
)
async def list_organizations(
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> list[OrganizationResponse]:
    return await service.list_organizations(current_user)


@router.post(
    "/organizations",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an organization",
)
async def create_organization(
    data: OrganizationCreateRequest,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> OrganizationResponse:
    """
    Create an organization owned by the caller, with a "General" workspace.
    """
    return await service.create_organization(data, current_user)


@router.get(
    "/organizations/{org_id}/members",
    response_model=list[OrgMemberResponse],
    summary="List organization members",
)
async def list_org_members(
    org_id: UUID,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> list[OrgMemberResponse]:
    return await service.list_members(org_id, current_user)


@router.post(
    "/organizations/{org_id}/members",
    response_model=OrgMemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a member by email",
)
async def add_org_member(
    org_id: UUID,
    data: OrgMemberAddRequest,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> OrgMemberResponse:
    """Owner or admin only."""
    return await service.add_member(org_id, data, current_user)


@router.patch(
    "/organizations/{org_id}/members/{user_id}",
    response_model=OrgMemberResponse,
    summary="Change a member's role",
)
async def update_org_member_role(
    org_id: UUID,
    user_id: UUID,
    data: OrgMemberRoleUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> OrgMemberResponse:
    """Owner only."""
    return await service.update_member_role(org_id, user_id, data.role, current_user)


@router.delete(
    "/organizations/{org_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a member",
)
async def remove_org_member(
    org_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> None:
    await service.remove_member(org_id, user_id, current_user)


@router.delete(
    "/organizations/{org_id}/leave",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Leave an organization",
)
async def leave_organization(
    org_id: UUID,
    current_user: User = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
) -> None:
    await service.leave(org_id, current_user)
