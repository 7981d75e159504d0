"""
Containment integrity.

Workspaces live in exactly one context, projects in exactly one workspace
and tasks in exactly one project. This module loads an entity together
with the guarantees its caller needs:
- the entity exists
- the caller may see it through every level above it
- member lists stay within the parent's membership, also when a user leaves

It also runs container deletes as an ordered sequence of independent
steps. Each step commits on its own. A failing step stops the cascade
without restoring the steps already done.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from trackspace.core.exceptions import (
    AuthorizationError,
    CascadeFailure,
    NotFoundError,
    ValidationError,
)
from trackspace.models.activity_log import ActivityLog
from trackspace.models.comment import Comment, CommentReaction
from trackspace.models.project import Project, ProjectMember
from trackspace.models.task import Task, TaskAssignee, TaskWatcher
from trackspace.models.user import ContextType, User
from trackspace.models.workspace import MemberRole, Workspace, WorkspaceMember
from trackspace.services.membership_service import MembershipAuthority

logger = logging.getLogger(__name__)


def ensure_subset(candidates: Iterable[UUID], allowed: set[UUID], parent: str) -> None:
    """Raise ValidationError unless every candidate is a member of the parent."""
    outsiders = {c for c in candidates if c not in allowed}
    if outsiders:
        listed = ", ".join(sorted(str(o) for o in outsiders))
        raise ValidationError(
            f"Users must be members of the {parent}: {listed}", code="NOT_A_PARENT_MEMBER"
        )


class ContainmentManager:
    """Parent/child checks and cascading deletes for the containment tree."""

    def __init__(self, db: AsyncSession, authority: MembershipAuthority | None = None) -> None:
        self.db = db
        self.authority = authority or MembershipAuthority(db)

    # -----------------------------------------------------------------------
    # Workspace
    # -----------------------------------------------------------------------

    async def get_workspace(self, workspace_id: UUID, user: User) -> Workspace:
        """Load a workspace the caller can read: any member of its context."""
        workspace = await self.db.scalar(select(Workspace).where(Workspace.id == workspace_id))
        if workspace is None:
            raise NotFoundError("Workspace not found", code="WORKSPACE_NOT_FOUND")
        await self.authority.require(user, workspace.context_type, workspace.context_id)
        return workspace

    async def require_workspace_member(
        self, workspace_id: UUID, user: User
    ) -> tuple[Workspace, MemberRole]:
        workspace = await self.get_workspace(workspace_id, user)
        role = await self.authority.workspace_role(user.id, workspace.id)
        if role is None:
            raise AuthorizationError(
                "You are not a member of this workspace", code="NOT_A_WORKSPACE_MEMBER"
            )
        return workspace, role

    async def require_workspace_owner(self, workspace_id: UUID, user: User) -> Workspace:
        workspace, role = await self.require_workspace_member(workspace_id, user)
        if role != MemberRole.owner:
            raise AuthorizationError(
                "Only the workspace owner can do this", code="NOT_WORKSPACE_OWNER"
            )
        return workspace

    # -----------------------------------------------------------------------
    # Project
    # -----------------------------------------------------------------------

    async def get_project(self, project_id: UUID, user: User) -> tuple[Project, Workspace]:
        """
        Load a project the caller can read.

        The caller must belong to the workspace's context and be a member of
        either the workspace or the project itself.
        """
        project = await self.db.scalar(select(Project).where(Project.id == project_id))
        if project is None:
            raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
        workspace = await self.get_workspace(project.workspace_id, user)

        if await self.authority.project_role(user.id, project.id) is None:
            if await self.authority.workspace_role(user.id, workspace.id) is None:
                raise AuthorizationError(
                    "You do not have access to this project", code="PROJECT_ACCESS_DENIED"
                )
        return project, workspace

    async def require_project_member(
        self, project_id: UUID, user: User
    ) -> tuple[Project, MemberRole]:
        project = await self.db.scalar(select(Project).where(Project.id == project_id))
        if project is None:
            raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
        await self.get_workspace(project.workspace_id, user)

        role = await self.authority.project_role(user.id, project.id)
        if role is None:
            raise AuthorizationError(
                "You are not a member of this project", code="NOT_A_PROJECT_MEMBER"
            )
        return project, role

    async def require_project_owner(self, project_id: UUID, user: User) -> Project:
        project, role = await self.require_project_member(project_id, user)
        if role != MemberRole.owner:
            raise AuthorizationError(
                "Only the project owner can do this", code="NOT_PROJECT_OWNER"
            )
        return project

    # -----------------------------------------------------------------------
    # Task
    # -----------------------------------------------------------------------

    async def get_task(self, task_id: UUID, user: User) -> tuple[Task, Project, MemberRole]:
        """Load a task; the caller must be a member of its project."""
        task = await self.db.scalar(select(Task).where(Task.id == task_id))
        if task is None:
            raise NotFoundError("Task not found", code="TASK_NOT_FOUND")
        project, role = await self.require_project_member(task.project_id, user)
        return task, project, role

    async def get_comment(self, task: Task, comment_id: UUID) -> Comment:
        comment = await self.db.scalar(
            select(Comment).where(Comment.id == comment_id, Comment.task_id == task.id)
        )
        if comment is None:
            raise NotFoundError("Comment not found", code="COMMENT_NOT_FOUND")
        return comment

    # -----------------------------------------------------------------------
    # Membership subsets
    # -----------------------------------------------------------------------

    async def ensure_users_exist(self, user_ids: Iterable[UUID]) -> None:
        wanted = set(user_ids)
        if not wanted:
            return
        result = await self.db.scalars(
            select(User.id).where(User.id.in_(list(wanted)), User.is_active.is_(True))
        )
        missing = wanted - set(result.all())
        if missing:
            raise NotFoundError(
                f"Unknown users: {', '.join(sorted(str(m) for m in missing))}",
                code="USER_NOT_FOUND",
            )

    async def hand_over_memberships(self, org_id: UUID, user_id: UUID, heir_id: UUID) -> None:
        """
        Take a user out of every workspace, project and task set in an organization.

        Workspaces and projects the user owned pass to `heir_id`, who is
        added to the enclosing workspace where needed so project membership
        stays within workspace membership.
        """
        workspace_ids = select(Workspace.id).where(
            Workspace.context_type == ContextType.organization,
            Workspace.context_id == org_id,
        )
        await self._hand_over(workspace_ids, user_id, heir_id)

    async def remove_from_workspace(self, workspace: Workspace, user_id: UUID, heir_id: UUID) -> None:
        """Drop a non-owner from a workspace and from every project and task set under it."""
        await self._hand_over(select(Workspace.id).where(Workspace.id == workspace.id), user_id, heir_id)

    async def remove_from_project(self, project: Project, user_id: UUID) -> None:
        """Drop a non-owner from a project and from its tasks' assignee and watcher sets."""
        task_ids = select(Task.id).where(Task.project_id == project.id)
        for stmt in (
            delete(TaskAssignee).where(TaskAssignee.user_id == user_id, TaskAssignee.task_id.in_(task_ids)),
            delete(TaskWatcher).where(TaskWatcher.user_id == user_id, TaskWatcher.task_id.in_(task_ids)),
            delete(ProjectMember).where(ProjectMember.user_id == user_id, ProjectMember.project_id == project.id),
        ):
            await self.db.execute(stmt.execution_options(synchronize_session=False))

    async def _hand_over(self, workspace_ids: Select, user_id: UUID, heir_id: UUID) -> None:
        project_ids = select(Project.id).where(Project.workspace_id.in_(workspace_ids))
        task_ids = select(Task.id).where(Task.project_id.in_(project_ids))

        owned_workspaces = await self.db.scalars(
            select(WorkspaceMember.workspace_id).where(
                WorkspaceMember.user_id == user_id,
                WorkspaceMember.role == MemberRole.owner,
                WorkspaceMember.workspace_id.in_(workspace_ids),
            )
        )
        for workspace_id in owned_workspaces.all():
            await self._grant(WorkspaceMember, WorkspaceMember.workspace_id, workspace_id, heir_id, MemberRole.owner)

        owned_projects = await self.db.execute(
            select(ProjectMember.project_id, Project.workspace_id)
            .join(Project, Project.id == ProjectMember.project_id)
            .where(
                ProjectMember.user_id == user_id,
                ProjectMember.role == MemberRole.owner,
                Project.workspace_id.in_(workspace_ids),
            )
        )
        for project_id, workspace_id in owned_projects.all():
            await self._grant(WorkspaceMember, WorkspaceMember.workspace_id, workspace_id, heir_id)
            await self._grant(ProjectMember, ProjectMember.project_id, project_id, heir_id, MemberRole.owner)

        for stmt in (
            delete(TaskAssignee).where(TaskAssignee.user_id == user_id, TaskAssignee.task_id.in_(task_ids)),
            delete(TaskWatcher).where(TaskWatcher.user_id == user_id, TaskWatcher.task_id.in_(task_ids)),
            delete(ProjectMember).where(ProjectMember.user_id == user_id, ProjectMember.project_id.in_(project_ids)),
            delete(WorkspaceMember).where(
                WorkspaceMember.user_id == user_id, WorkspaceMember.workspace_id.in_(workspace_ids)
            ),
        ):
            await self.db.execute(stmt.execution_options(synchronize_session=False))

    async def _grant(
        self, member_model, parent_column, parent_id: UUID, user_id: UUID, role: MemberRole | None = None
    ) -> None:
        """Make sure `user_id` is a member of the container; upgrade to `role` if given."""
        existing = await self.db.scalar(
            select(member_model).where(parent_column == parent_id, member_model.user_id == user_id)
        )
        if existing is None:
            self.db.add(
                member_model(
                    **{parent_column.key: parent_id},
                    user_id=user_id,
                    role=role or MemberRole.member,
                )
            )
        elif role is not None:
            existing.role = role
        await self.db.flush()

    # -----------------------------------------------------------------------
    # Cascading deletes
    # -----------------------------------------------------------------------

    async def delete_task(self, task: Task) -> None:
        await self._delete_tasks(select(Task.id).where(Task.id == task.id), f"task {task.id}")

    async def delete_project(self, project: Project) -> None:
        label = f"project {project.id}"
        await self._delete_tasks(select(Task.id).where(Task.project_id == project.id), label)
        await self._step(
            label,
            "project members",
            delete(ProjectMember).where(ProjectMember.project_id == project.id),
        )
        await self._step(label, "project", delete(Project).where(Project.id == project.id))

    async def delete_workspace(self, workspace: Workspace) -> None:
        label = f"workspace {workspace.id}"
        project_ids = select(Project.id).where(Project.workspace_id == workspace.id)
        await self._delete_tasks(select(Task.id).where(Task.project_id.in_(project_ids)), label)
        await self._step(
            label,
            "project members",
            delete(ProjectMember).where(ProjectMember.project_id.in_(project_ids)),
        )
        await self._step(
            label, "projects", delete(Project).where(Project.workspace_id == workspace.id)
        )
        await self._step(
            label,
            "workspace members",
            delete(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace.id),
        )
        await self._step(label, "workspace", delete(Workspace).where(Workspace.id == workspace.id))

    async def _delete_tasks(self, task_ids: Select, label: str) -> None:
        comment_ids = select(Comment.id).where(Comment.task_id.in_(task_ids))
        await self._step(
            label,
            "reactions",
            delete(CommentReaction).where(CommentReaction.comment_id.in_(comment_ids)),
        )
        await self._step(label, "comments", delete(Comment).where(Comment.task_id.in_(task_ids)))
        await self._step(
            label, "activity", delete(ActivityLog).where(ActivityLog.task_id.in_(task_ids))
        )
        await self._step(
            label, "assignees", delete(TaskAssignee).where(TaskAssignee.task_id.in_(task_ids))
        )
        await self._step(
            label, "watchers", delete(TaskWatcher).where(TaskWatcher.task_id.in_(task_ids))
        )
        await self._step(label, "tasks", delete(Task).where(Task.id.in_(task_ids)))

    async def _step(self, label: str, what: str, stmt) -> None:
        try:
            await self.db.execute(stmt.execution_options(synchronize_session=False))
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Cascade delete of %s failed while removing %s: %s", label, what, exc)
            raise CascadeFailure(
                f"Deleting {label} stopped while removing {what}; "
                "items removed before this step stay removed"
            ) from exc
