"""
Task management endpoints.

CRUD operations for tasks, watchers, comments, reactions and the activity log.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.config import settings
from trackspace.core.database import get_db
from trackspace.core.dependencies import get_activity_pipeline, get_current_user
from trackspace.models.user import User
from trackspace.schemas.task import (
    ActivityListResponse,
    CommentCreateRequest,
    CommentListResponse,
    CommentResponse,
    ReactionRequest,
    TaskCreateRequest,
    TaskDetailResponse,
    TaskListResponse,
    TaskUpdateRequest,
    WatcherUpdateRequest,
)
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.task_service import TaskService

router = APIRouter()


def get_task_service(
    db: AsyncSession = Depends(get_db),
    pipeline: ActivityPipeline = Depends(get_activity_pipeline),
) -> TaskService:
    return TaskService(db=db, pipeline=pipeline)


# ---------------------------------------------------------------------------
# List Tasks
# ---------------------------------------------------------------------------

@router.get(
    "/assigned",
    response_model=TaskListResponse,
    summary="List tasks assigned to the caller",
)
async def list_assigned_tasks(
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskListResponse:
    return await service.list_assigned_tasks(current_user)


@router.get(
    "/project/{project_id}",
    response_model=TaskListResponse,
    summary="List tasks in a project",
)
async def list_project_tasks(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskListResponse:
    return await service.list_project_tasks(project_id, current_user)


@router.get(
    "/workspace/{workspace_id}",
    response_model=TaskListResponse,
    summary="List tasks across a workspace",
)
async def list_workspace_tasks(
    workspace_id: UUID,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskListResponse:
    """Tasks of every project in the workspace the caller is a member of."""
    return await service.list_workspace_tasks(workspace_id, current_user)


# ---------------------------------------------------------------------------
# Create / Get / Update / Delete
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=TaskDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
)
async def create_task(
    data: TaskCreateRequest,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskDetailResponse:
    return await service.create_task(data, current_user)


@router.get(
    "/{task_id}",
    response_model=TaskDetailResponse,
    summary="Get task detail with comments",
)
async def get_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskDetailResponse:
    return await service.get_task(task_id, current_user)


@router.patch(
    "/{task_id}",
    response_model=TaskDetailResponse,
    summary="Update task fields",
)
async def update_task(
    task_id: UUID,
    data: TaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskDetailResponse:
    """
    Apply only the fields present in the body. Any project member may edit.
    """
    return await service.update_task(task_id, data, current_user)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task",
)
async def delete_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> None:
    """Creator or project owner only. Removes comments and activity too."""
    await service.delete_task(task_id, current_user)


# ---------------------------------------------------------------------------
# Watchers
# ---------------------------------------------------------------------------

@router.post(
    "/{task_id}/watchers",
    response_model=TaskDetailResponse,
    summary="Add or remove a watcher",
)
async def update_watchers(
    task_id: UUID,
    data: WatcherUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> TaskDetailResponse:
    return await service.update_watchers(task_id, data, current_user)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.get(
    "/{task_id}/comments",
    response_model=CommentListResponse,
    summary="List comments on a task",
)
async def list_comments(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> CommentListResponse:
    return await service.list_comments(task_id, current_user)


@router.post(
    "/{task_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment",
)
async def create_comment(
    task_id: UUID,
    data: CommentCreateRequest,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> CommentResponse:
    """
    Post a comment. `@Display Name` notifies the project member with exactly that name.
    """
    return await service.create_comment(task_id, data, current_user)


@router.post(
    "/{task_id}/comments/{comment_id}/reactions",
    response_model=CommentResponse,
    summary="React to a comment",
)
async def react_to_comment(
    task_id: UUID,
    comment_id: UUID,
    data: ReactionRequest,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> CommentResponse:
    return await service.react(task_id, comment_id, data, current_user)


# ---------------------------------------------------------------------------
# Activity Log
# ---------------------------------------------------------------------------

@router.get(
    "/{task_id}/activities",
    response_model=ActivityListResponse,
    summary="Get task activity log",
)
async def list_activities(
    task_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.ACTIVITY_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
) -> ActivityListResponse:
    return await service.list_activities(task_id, current_user, page=page, limit=limit)
