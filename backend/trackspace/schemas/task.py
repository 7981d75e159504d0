"""
Task schemas.

Request/response models for task CRUD, watchers, comments, reactions and
the activity log.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from trackspace.models.task import TaskPriority, TaskStatus
from trackspace.schemas.auth import UserSummaryResponse


# ---------------------------------------------------------------------------
# Task Create / Update
# ---------------------------------------------------------------------------

class TaskCreateRequest(BaseModel):
    """Request body for POST /tasks."""

    project_id: UUID = Field(validation_alias=AliasChoices("project_id", "project"))
    title: str = Field(max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    due_date: date | None = Field(default=None, validation_alias=AliasChoices("due_date", "dueDate"))
    assignees: list[UUID] = Field(default_factory=list)


class TaskUpdateRequest(BaseModel):
    """
    Request body for PATCH /tasks/{task_id}.

    Each field present in the body replaces the stored value outright;
    absent fields are untouched. `assignees` replaces the whole set.
    """

    title: str | None = Field(default=None, max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = Field(default=None, validation_alias=AliasChoices("due_date", "dueDate"))
    assignees: list[UUID] | None = None


class WatcherUpdateRequest(BaseModel):
    """Request body for POST /tasks/{task_id}/watchers."""

    user_id: UUID = Field(validation_alias=AliasChoices("user_id", "userId"))
    action: str = Field(pattern="^(add|remove)$")


# ---------------------------------------------------------------------------
# Comments / reactions
# ---------------------------------------------------------------------------

class CommentCreateRequest(BaseModel):
    """Request body for POST /tasks/{task_id}/comments."""

    content: str = Field(max_length=10000)


class ReactionRequest(BaseModel):
    """Request body for POST /tasks/{task_id}/comments/{comment_id}/reactions."""

    emoji: str = Field(max_length=32)
    action: str = Field(default="toggle", pattern="^(add|remove|toggle)$")


class ReactionGroup(BaseModel):
    emoji: str
    count: int
    users: list[UUID]


class CommentResponse(BaseModel):
    id: UUID
    task_id: UUID
    author: UserSummaryResponse | None
    content: str
    is_edited: bool
    reactions: list[ReactionGroup]
    created_at: datetime
    updated_at: datetime


class CommentListResponse(BaseModel):
    comments: list[CommentResponse]
    total: int


# ---------------------------------------------------------------------------
# Task responses
# ---------------------------------------------------------------------------

class TaskResponse(BaseModel):
    id: UUID
    project_id: UUID
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None
    created_by: UUID
    creator: UserSummaryResponse | None
    assignees: list[UserSummaryResponse]
    watchers: list[UserSummaryResponse]
    created_at: datetime
    updated_at: datetime


class TaskDetailResponse(TaskResponse):
    """Full task with comments, returned by GET /tasks/{task_id}."""

    comments: list[CommentResponse]


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    total: int


# ---------------------------------------------------------------------------
# Activity Log
# ---------------------------------------------------------------------------

class ActivityResponse(BaseModel):
    id: UUID
    task_id: UUID
    action: str
    field: str | None
    old_value: Any = None
    new_value: Any = None
    details: str | None
    metadata: dict[str, Any] | None = None
    performed_by: UserSummaryResponse | None
    created_at: datetime


class ActivityListResponse(BaseModel):
    """Response for GET /tasks/{task_id}/activities."""

    activities: list[ActivityResponse]
    total: int
    page: int
    total_pages: int
