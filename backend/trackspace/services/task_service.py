"""
Task business logic.

Handles task CRUD, assignee/watcher sets, comments, reactions and the
activity log. Every mutation is recorded through the activity pipeline.

Statuses and priorities have no illegal transitions. A PATCH applies only
the fields present in the body, and the ORM writes only the columns that
changed, so concurrent edits to different fields do not clobber each other.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.exceptions import AuthorizationError, ValidationError
from trackspace.models.activity_log import ActivityAction, ActivityLog
from trackspace.models.comment import Comment, CommentReaction
from trackspace.models.project import Project, ProjectMember
from trackspace.models.task import Task, TaskAssignee, TaskPriority, TaskWatcher
from trackspace.models.user import User
from trackspace.models.workspace import MemberRole
from trackspace.schemas.auth import UserSummaryResponse
from trackspace.schemas.task import (
    ActivityListResponse,
    ActivityResponse,
    CommentCreateRequest,
    CommentListResponse,
    CommentResponse,
    ReactionGroup,
    ReactionRequest,
    TaskCreateRequest,
    TaskDetailResponse,
    TaskListResponse,
    TaskResponse,
    TaskUpdateRequest,
    WatcherUpdateRequest,
)
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.containment_service import ContainmentManager, ensure_subset
from trackspace.services.mentions import find_mentions

# field -> activity action for scalar task fields, in the order changes are recorded
SCALAR_FIELDS: dict[str, ActivityAction] = {
    "title": ActivityAction.title_changed,
    "description": ActivityAction.description_changed,
    "status": ActivityAction.status_changed,
    "priority": ActivityAction.priority_changed,
    "due_date": ActivityAction.due_date_changed,
}
REQUIRED_FIELDS = {"title", "status", "priority"}


def _jsonable(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


def group_reactions(reactions: Iterable[CommentReaction]) -> list[ReactionGroup]:
    """Group reactions by emoji. Input is oldest first, so groups keep first-use order."""
    groups: dict[str, list[CommentReaction]] = {}
    for reaction in reactions:
        groups.setdefault(reaction.emoji, []).append(reaction)
    return [
        ReactionGroup(emoji=emoji, count=len(items), users=[r.user_id for r in items])
        for emoji, items in groups.items()
    ]


class TaskService:
    """Handles all task operations."""

    def __init__(self, db: AsyncSession, pipeline: ActivityPipeline) -> None:
        self.db = db
        self.pipeline = pipeline
        self.containment = ContainmentManager(db)
        self.authority = self.containment.authority

    # -----------------------------------------------------------------------
    # List Tasks
    # -----------------------------------------------------------------------

    async def list_project_tasks(self, project_id: UUID, user: User) -> TaskListResponse:
        project, _ = await self.containment.require_project_member(project_id, user)
        result = await self.db.scalars(
            select(Task)
            .where(Task.project_id == project.id)
            .order_by(Task.created_at.desc())
        )
        tasks = list(result.all())
        return TaskListResponse(tasks=await self._serialize_tasks(tasks), total=len(tasks))

    async def list_assigned_tasks(self, user: User) -> TaskListResponse:
        """
        Tasks assigned to the caller, soonest due date first, undated last.

        Tasks due the same day are ordered most urgent first.
        """
        urgency = case(*[(Task.priority == p, p.weight) for p in TaskPriority])
        result = await self.db.scalars(
            select(Task)
            .join(TaskAssignee, TaskAssignee.task_id == Task.id)
            .where(TaskAssignee.user_id == user.id)
            .order_by(
                Task.due_date.is_(None), Task.due_date, urgency.desc(), Task.created_at.desc()
            )
        )
        tasks = list(result.all())
        return TaskListResponse(tasks=await self._serialize_tasks(tasks), total=len(tasks))

    async def list_workspace_tasks(self, workspace_id: UUID, user: User) -> TaskListResponse:
        """Tasks of every project in the workspace the caller is a member of."""
        workspace = await self.containment.get_workspace(workspace_id, user)
        result = await self.db.scalars(
            select(Task)
            .join(Project, Project.id == Task.project_id)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .where(Project.workspace_id == workspace.id, ProjectMember.user_id == user.id)
            .order_by(Task.created_at.desc())
        )
        tasks = list(result.all())
        return TaskListResponse(tasks=await self._serialize_tasks(tasks), total=len(tasks))

    # -----------------------------------------------------------------------
    # Create Task
    # -----------------------------------------------------------------------

    async def create_task(self, data: TaskCreateRequest, actor: User) -> TaskDetailResponse:
        """
        Create a task in a project the actor belongs to.

        The creator starts out as the only watcher. Assignees must be project
        members and are notified.
        """
        project, _ = await self.containment.require_project_member(data.project_id, actor)

        title = data.title.strip()
        if not title:
            raise ValidationError("Task title is required", code="TITLE_REQUIRED")

        assignees = list(dict.fromkeys(data.assignees))
        ensure_subset(assignees, await self.authority.project_member_ids(project.id), "project")

        task = Task(
            project_id=project.id,
            title=title,
            description=data.description,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            created_by=actor.id,
        )
        self.db.add(task)
        await self.db.flush()

        self.db.add(TaskWatcher(task_id=task.id, user_id=actor.id))
        for user_id in assignees:
            self.db.add(TaskAssignee(task_id=task.id, user_id=user_id))
        await self.db.flush()

        await self.pipeline.record_and_notify(
            task,
            ActivityAction.created,
            actor,
            details=f"Created task {title}",
            assigned=assignees,
        )

        return await self._detail(task)

    # -----------------------------------------------------------------------
    # Get Task Detail
    # -----------------------------------------------------------------------

    async def get_task(self, task_id: UUID, user: User) -> TaskDetailResponse:
        task, _, _ = await self.containment.get_task(task_id, user)
        return await self._detail(task)

    # -----------------------------------------------------------------------
    # Update Task
    # -----------------------------------------------------------------------

    async def update_task(
        self, task_id: UUID, data: TaskUpdateRequest, actor: User
    ) -> TaskDetailResponse:
        """
        Apply the fields present in the body.

        Each changed field writes one activity; unchanged fields write none.
        `assignees` replaces the set and records one assigned/unassigned
        activity per user added or removed.
        """
        task, project, _ = await self.containment.get_task(task_id, actor)
        sent = data.model_fields_set
        changes: list[tuple[str, Any, Any]] = []

        for field in SCALAR_FIELDS:
            if field not in sent:
                continue
            new = getattr(data, field)
            if field == "title" and new is not None:
                new = new.strip()
            if field in REQUIRED_FIELDS and not new:
                raise ValidationError(f"{field} cannot be empty", code="FIELD_REQUIRED")
            old = getattr(task, field)
            if new != old:
                changes.append((field, old, new))

        added: list[UUID] = []
        removed: list[UUID] = []
        if "assignees" in sent:
            wanted = list(dict.fromkeys(data.assignees or []))
            ensure_subset(wanted, await self.authority.project_member_ids(project.id), "project")
            current = await self._assignee_ids(task.id)
            added = [u for u in wanted if u not in current]
            removed = sorted(current - set(wanted), key=str)

        for field, _, new in changes:
            setattr(task, field, new)
        for user_id in added:
            self.db.add(TaskAssignee(task_id=task.id, user_id=user_id))
        if removed:
            await self.db.execute(
                delete(TaskAssignee)
                .where(TaskAssignee.task_id == task.id, TaskAssignee.user_id.in_(removed))
                .execution_options(synchronize_session=False)
            )
        await self.db.flush()

        for field, old, new in changes:
            await self.pipeline.record_and_notify(
                task,
                SCALAR_FIELDS[field],
                actor,
                field=field,
                old_value=_jsonable(old),
                new_value=_jsonable(new),
                details=f"Changed {field.replace('_', ' ')}",
            )
        for user_id in added:
            await self.pipeline.record_and_notify(
                task,
                ActivityAction.assigned,
                actor,
                field="assignees",
                new_value=str(user_id),
                assigned=[user_id],
            )
        for user_id in removed:
            await self.pipeline.record_and_notify(
                task,
                ActivityAction.unassigned,
                actor,
                field="assignees",
                old_value=str(user_id),
            )

        return await self._detail(task)

    # -----------------------------------------------------------------------
    # Delete Task
    # -----------------------------------------------------------------------

    async def delete_task(self, task_id: UUID, actor: User) -> None:
        """Delete a task with its comments and activity. Creator or project owner only."""
        task, _, role = await self.containment.get_task(task_id, actor)
        if task.created_by != actor.id and role != MemberRole.owner:
            raise AuthorizationError(
                "Only the task creator or the project owner can delete this task",
                code="FORBIDDEN",
            )
        await self.containment.delete_task(task)

    # -----------------------------------------------------------------------
    # Watchers
    # -----------------------------------------------------------------------

    async def update_watchers(
        self, task_id: UUID, data: WatcherUpdateRequest, actor: User
    ) -> TaskDetailResponse:
        """Idempotent add/remove. A no-op records nothing."""
        task, project, _ = await self.containment.get_task(task_id, actor)
        watching = data.user_id in await self._watcher_ids(task.id)

        if data.action == "add" and not watching:
            ensure_subset(
                [data.user_id], await self.authority.project_member_ids(project.id), "project"
            )
            self.db.add(TaskWatcher(task_id=task.id, user_id=data.user_id))
            await self.db.flush()
            await self.pipeline.record_and_notify(
                task,
                ActivityAction.watcher_added,
                actor,
                field="watchers",
                new_value=str(data.user_id),
            )
        elif data.action == "remove" and watching:
            await self.db.execute(
                delete(TaskWatcher)
                .where(TaskWatcher.task_id == task.id, TaskWatcher.user_id == data.user_id)
                .execution_options(synchronize_session=False)
            )
            await self.pipeline.record_and_notify(
                task,
                ActivityAction.watcher_removed,
                actor,
                field="watchers",
                old_value=str(data.user_id),
            )

        return await self._detail(task)

    # -----------------------------------------------------------------------
    # Comments
    # -----------------------------------------------------------------------

    async def list_comments(self, task_id: UUID, user: User) -> CommentListResponse:
        task, _, _ = await self.containment.get_task(task_id, user)
        comments = await self._comments_for(task.id)
        return CommentListResponse(comments=comments, total=len(comments))

    async def create_comment(
        self, task_id: UUID, data: CommentCreateRequest, author: User
    ) -> CommentResponse:
        """
        Add a comment, then notify watchers, assignees and @mentioned members.
        """
        task, project, _ = await self.containment.get_task(task_id, author)

        content = data.content.strip()
        if not content:
            raise ValidationError("Comment cannot be empty", code="CONTENT_REQUIRED")

        comment = Comment(task_id=task.id, author_id=author.id, content=content)
        self.db.add(comment)
        await self.db.flush()

        members = await self.db.execute(
            select(User.id, User.display_name)
            .join(ProjectMember, ProjectMember.user_id == User.id)
            .where(ProjectMember.project_id == project.id)
        )
        mentioned = find_mentions(content, dict(members.all()))

        await self.pipeline.record_and_notify(
            task,
            ActivityAction.comment_added,
            author,
            details=content[:200],
            extra={"comment_id": str(comment.id)},
            comment_id=comment.id,
            mentioned=mentioned,
        )

        return self._comment_response(comment, author, [])

    # -----------------------------------------------------------------------
    # Reactions
    # -----------------------------------------------------------------------

    async def react(
        self, task_id: UUID, comment_id: UUID, data: ReactionRequest, actor: User
    ) -> CommentResponse:
        """
        Add, remove or toggle one emoji for the actor on a comment.

        Adding an emoji already held, or removing one not held, changes
        nothing and records no activity.
        """
        task, _, _ = await self.containment.get_task(task_id, actor)
        comment = await self.containment.get_comment(task, comment_id)
        emoji = data.emoji.strip()
        if not emoji:
            raise ValidationError("Emoji is required", code="EMOJI_REQUIRED")

        existing = await self.db.scalar(
            select(CommentReaction).where(
                CommentReaction.comment_id == comment.id,
                CommentReaction.user_id == actor.id,
                CommentReaction.emoji == emoji,
            )
        )
        adding = existing is None and data.action in ("add", "toggle")
        removing = existing is not None and data.action in ("remove", "toggle")

        if adding:
            self.db.add(CommentReaction(comment_id=comment.id, user_id=actor.id, emoji=emoji))
            await self.db.flush()
        elif removing:
            await self.db.delete(existing)
            await self.db.flush()

        if adding or removing:
            await self.pipeline.record_and_notify(
                task,
                ActivityAction.comment_reaction_added if adding else ActivityAction.comment_reaction_removed,
                actor,
                field="reactions",
                new_value=emoji if adding else None,
                old_value=emoji if removing else None,
                extra={"comment_id": str(comment.id), "emoji": emoji},
                comment_id=comment.id,
            )

        reactions = await self._reactions_for([comment.id])
        author = await self.db.scalar(select(User).where(User.id == comment.author_id))
        return self._comment_response(comment, author, reactions.get(comment.id, []))

    # -----------------------------------------------------------------------
    # Activity Log
    # -----------------------------------------------------------------------

    async def list_activities(
        self, task_id: UUID, user: User, page: int = 1, limit: int = 20
    ) -> ActivityListResponse:
        """Activity log for a task, newest first, paginated."""
        task, _, _ = await self.containment.get_task(task_id, user)

        total = await self.db.scalar(
            select(func.count(ActivityLog.id)).where(ActivityLog.task_id == task.id)
        ) or 0

        result = await self.db.scalars(
            select(ActivityLog)
            .where(ActivityLog.task_id == task.id)
            .order_by(ActivityLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        logs = list(result.all())
        actors = await self._load_users(log.performed_by for log in logs)

        return ActivityListResponse(
            activities=[
                ActivityResponse(
                    id=log.id,
                    task_id=log.task_id,
                    action=log.action,
                    field=log.field,
                    old_value=log.old_value,
                    new_value=log.new_value,
                    details=log.details,
                    metadata=log.extra,
                    performed_by=actors.get(log.performed_by),
                    created_at=log.created_at,
                )
                for log in logs
            ],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _assignee_ids(self, task_id: UUID) -> set[UUID]:
        result = await self.db.scalars(
            select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)
        )
        return set(result.all())

    async def _watcher_ids(self, task_id: UUID) -> set[UUID]:
        result = await self.db.scalars(
            select(TaskWatcher.user_id).where(TaskWatcher.task_id == task_id)
        )
        return set(result.all())

    async def _load_users(self, user_ids: Iterable[UUID]) -> dict[UUID, UserSummaryResponse]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await self.db.scalars(select(User).where(User.id.in_(ids)))
        return {u.id: UserSummaryResponse.model_validate(u) for u in result.all()}

    async def _serialize_tasks(self, tasks: list[Task]) -> list[TaskResponse]:
        """Build task responses with assignee/watcher sets loaded in two queries."""
        if not tasks:
            return []
        task_ids = [t.id for t in tasks]

        assignee_rows = await self.db.execute(
            select(TaskAssignee.task_id, TaskAssignee.user_id)
            .where(TaskAssignee.task_id.in_(task_ids))
            .order_by(TaskAssignee.added_at)
        )
        watcher_rows = await self.db.execute(
            select(TaskWatcher.task_id, TaskWatcher.user_id)
            .where(TaskWatcher.task_id.in_(task_ids))
            .order_by(TaskWatcher.added_at)
        )
        assignees: dict[UUID, list[UUID]] = {}
        for task_id, user_id in assignee_rows.all():
            assignees.setdefault(task_id, []).append(user_id)
        watchers: dict[UUID, list[UUID]] = {}
        for task_id, user_id in watcher_rows.all():
            watchers.setdefault(task_id, []).append(user_id)

        users = await self._load_users(
            [t.created_by for t in tasks]
            + [u for ids in assignees.values() for u in ids]
            + [u for ids in watchers.values() for u in ids]
        )

        return [
            TaskResponse(
                id=t.id,
                project_id=t.project_id,
                title=t.title,
                description=t.description,
                status=t.status,
                priority=t.priority,
                due_date=t.due_date,
                created_by=t.created_by,
                creator=users.get(t.created_by),
                assignees=[users[u] for u in assignees.get(t.id, []) if u in users],
                watchers=[users[u] for u in watchers.get(t.id, []) if u in users],
                created_at=t.created_at,
                updated_at=t.updated_at,
            )
            for t in tasks
        ]

    async def _detail(self, task: Task) -> TaskDetailResponse:
        [summary] = await self._serialize_tasks([task])
        return TaskDetailResponse(
            **summary.model_dump(),
            comments=await self._comments_for(task.id),
        )

    async def _reactions_for(self, comment_ids: list[UUID]) -> dict[UUID, list[ReactionGroup]]:
        if not comment_ids:
            return {}
        result = await self.db.scalars(
            select(CommentReaction)
            .where(CommentReaction.comment_id.in_(comment_ids))
            .order_by(CommentReaction.created_at, CommentReaction.id)
        )
        by_comment: dict[UUID, list[CommentReaction]] = {}
        for reaction in result.all():
            by_comment.setdefault(reaction.comment_id, []).append(reaction)
        return {cid: group_reactions(items) for cid, items in by_comment.items()}

    async def _comments_for(self, task_id: UUID) -> list[CommentResponse]:
        result = await self.db.scalars(
            select(Comment).where(Comment.task_id == task_id).order_by(Comment.created_at)
        )
        comments = list(result.all())
        if not comments:
            return []

        authors_result = await self.db.scalars(
            select(User).where(User.id.in_(list({c.author_id for c in comments})))
        )
        authors = {u.id: u for u in authors_result.all()}
        reactions = await self._reactions_for([c.id for c in comments])

        return [
            self._comment_response(c, authors.get(c.author_id), reactions.get(c.id, []))
            for c in comments
        ]

    @staticmethod
    def _comment_response(
        comment: Comment, author: User | None, reactions: list[ReactionGroup]
    ) -> CommentResponse:
        return CommentResponse(
            id=comment.id,
            task_id=comment.task_id,
            author=UserSummaryResponse.model_validate(author) if author else None,
            content=comment.content,
            is_edited=comment.is_edited,
            reactions=reactions,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )
