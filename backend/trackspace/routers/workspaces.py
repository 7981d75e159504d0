"""
Workspace endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.database import get_db
from trackspace.core.dependencies import get_current_user
from trackspace.models.user import ContextType, User
from trackspace.schemas.workspace import (
    WorkspaceCreateRequest,
    WorkspaceMemberAddRequest,
    WorkspaceResponse,
    WorkspaceUpdateRequest,
)
from trackspace.services.workspace_service import WorkspaceService

router = APIRouter()


def get_workspace_service(db: AsyncSession = Depends(get_db)) -> WorkspaceService:
    return WorkspaceService(db=db)


# ---------------------------------------------------------------------------
# List / Create
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[WorkspaceResponse],
    summary="List workspaces in a context",
)
async def list_workspaces(
    context_type: ContextType | None = Query(default=None, alias="contextType"),
    context_id: UUID | None = Query(default=None, alias="contextId"),
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
) -> list[WorkspaceResponse]:
    """
    Workspaces the caller belongs to. Without parameters the active
    context is used.
    """
    return await service.list_workspaces(current_user, context_type, context_id)


@router.post(
    "",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workspace",
)
async def create_workspace(
    data: WorkspaceCreateRequest,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceResponse:
    return await service.create_workspace(data, current_user)


# ---------------------------------------------------------------------------
# Get / Update / Delete
# ---------------------------------------------------------------------------

@router.get(
    "/{workspace_id}",
    response_model=WorkspaceResponse,
    summary="Get a workspace",
)
async def get_workspace(
    workspace_id: UUID,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceResponse:
    return await service.get_workspace(workspace_id, current_user)


@router.patch(
    "/{workspace_id}",
    response_model=WorkspaceResponse,
    summary="Update a workspace",
)
async def update_workspace(
    workspace_id: UUID,
    data: WorkspaceUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceResponse:
    """Owner only."""
    return await service.update_workspace(workspace_id, data, current_user)


@router.delete(
    "/{workspace_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a workspace with all projects and tasks",
)
async def delete_workspace(
    workspace_id: UUID,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
) -> None:
    await service.delete_workspace(workspace_id, current_user)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.post(
    "/{workspace_id}/members",
    response_model=WorkspaceResponse,
    summary="Add a workspace member",
)
async def add_workspace_member(
    workspace_id: UUID,
    data: WorkspaceMemberAddRequest,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceResponse:
    return await service.add_member(workspace_id, data.user_id, current_user)


@router.delete(
    "/{workspace_id}/members/{user_id}",
    response_model=WorkspaceResponse,
    summary="Remove a workspace member",
)
async def remove_workspace_member(
    workspace_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceResponse:
    return await service.remove_member(workspace_id, user_id, current_user)
