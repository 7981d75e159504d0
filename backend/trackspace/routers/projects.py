"""
Project management endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.database import get_db
from trackspace.core.dependencies import get_activity_pipeline, get_current_user
from trackspace.models.user import User
from trackspace.schemas.project import (
    ProjectCreateRequest,
    ProjectMemberAddRequest,
    ProjectResponse,
    ProjectUpdateRequest,
)
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.project_service import ProjectService

router = APIRouter()


def get_project_service(
    db: AsyncSession = Depends(get_db),
    pipeline: ActivityPipeline = Depends(get_activity_pipeline),
) -> ProjectService:
    return ProjectService(db=db, pipeline=pipeline)


@router.get(
    "",
    response_model=list[ProjectResponse],
    summary="List the caller's projects",
)
async def list_my_projects(
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> list[ProjectResponse]:
    return await service.list_my_projects(current_user)


@router.get(
    "/workspace/{workspace_id}",
    response_model=list[ProjectResponse],
    summary="List projects in a workspace",
)
async def list_workspace_projects(
    workspace_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> list[ProjectResponse]:
    return await service.list_workspace_projects(workspace_id, current_user)


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
async def create_project(
    data: ProjectCreateRequest,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    """
    Create a project in a workspace the caller belongs to.

    `members` must already be members of the workspace.
    """
    return await service.create_project(data, current_user)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get a project",
)
async def get_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.get_project(project_id, current_user)


@router.patch(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Update a project",
)
async def update_project(
    project_id: UUID,
    data: ProjectUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    """Owner only. Fields absent from the body are left unchanged."""
    return await service.update_project(project_id, data, current_user)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project with all of its tasks",
)
async def delete_project(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> None:
    await service.delete_project(project_id, current_user)


@router.post(
    "/{project_id}/members",
    response_model=ProjectResponse,
    summary="Add a project member",
)
async def add_project_member(
    project_id: UUID,
    data: ProjectMemberAddRequest,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.add_member(project_id, data.member_id, current_user)


@router.delete(
    "/{project_id}/members/{user_id}",
    response_model=ProjectResponse,
    summary="Remove a project member",
)
async def remove_project_member(
    project_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
) -> ProjectResponse:
    return await service.remove_member(project_id, user_id, current_user)
