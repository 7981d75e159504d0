"""
Project business logic.

Handles project CRUD and project membership. A project lives in exactly
one workspace and its members are always workspace members.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.exceptions import ConflictError, NotFoundError, ValidationError
from trackspace.models.notification import NotificationType
from trackspace.models.project import Project, ProjectMember
from trackspace.models.user import ContextType, User
from trackspace.models.workspace import MemberRole, Workspace
from trackspace.schemas.project import (
    ProjectCreateRequest,
    ProjectResponse,
    ProjectUpdateRequest,
)
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.containment_service import ContainmentManager, ensure_subset
from trackspace.services.workspace_service import load_members, owner_of

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {"name", "status", "tags"}


class ProjectService:

    def __init__(self, db: AsyncSession, pipeline: ActivityPipeline) -> None:
        self.db = db
        self.pipeline = pipeline
        self.containment = ContainmentManager(db)
        self.authority = self.containment.authority

    # -----------------------------------------------------------------------
    # List / Get
    # -----------------------------------------------------------------------

    async def list_workspace_projects(self, workspace_id: UUID, user: User) -> list[ProjectResponse]:
        workspace, _ = await self.containment.require_workspace_member(workspace_id, user)
        result = await self.db.scalars(
            select(Project)
            .where(Project.workspace_id == workspace.id)
            .order_by(Project.created_at.desc())
        )
        return await self._serialize(list(result.all()))

    async def list_my_projects(self, user: User) -> list[ProjectResponse]:
        """Every project the caller is a member of, across all workspaces."""
        result = await self.db.scalars(
            select(Project)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .where(ProjectMember.user_id == user.id)
            .order_by(Project.created_at.desc())
        )
        return await self._serialize(list(result.all()))

    async def get_project(self, project_id: UUID, user: User) -> ProjectResponse:
        project, _ = await self.containment.get_project(project_id, user)
        [response] = await self._serialize([project])
        return response

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create_project(self, data: ProjectCreateRequest, user: User) -> ProjectResponse:
        """
        Create a project inside a workspace the caller belongs to.

        The caller becomes the owner. Listed members must already be members
        of the workspace and each one is notified.
        """
        workspace, _ = await self.containment.require_workspace_member(data.workspace_id, user)

        name = data.name.strip()
        if not name:
            raise ValidationError("Project name is required", code="NAME_REQUIRED")
        self._check_dates(data.start_date, data.end_date)

        members = [m for m in dict.fromkeys(data.members) if m != user.id]
        ensure_subset(members, await self.authority.workspace_member_ids(workspace.id), "workspace")

        project = Project(
            workspace_id=workspace.id,
            name=name,
            description=data.description,
            status=data.status,
            start_date=data.start_date,
            end_date=data.end_date,
            tags=list(data.tags),
        )
        self.db.add(project)
        await self.db.flush()

        self.db.add(ProjectMember(project_id=project.id, user_id=user.id, role=MemberRole.owner))
        for member_id in members:
            self.db.add(ProjectMember(project_id=project.id, user_id=member_id))
        await self.db.flush()

        for member_id in members:
            self._notify_added(member_id, project, workspace, user)

        logger.info("User %s created project %s in workspace %s", user.id, project.id, workspace.id)
        [response] = await self._serialize([project])
        return response

    # -----------------------------------------------------------------------
    # Update
    # -----------------------------------------------------------------------

    async def update_project(
        self, project_id: UUID, data: ProjectUpdateRequest, user: User
    ) -> ProjectResponse:
        project = await self.containment.require_project_owner(project_id, user)
        sent = data.model_fields_set

        for field in ("name", "description", "status", "start_date", "end_date", "tags"):
            if field not in sent:
                continue
            value = getattr(data, field)
            if field == "name" and value is not None:
                value = value.strip()
            if field in REQUIRED_FIELDS and (value is None or value == ""):
                raise ValidationError(f"{field} cannot be empty", code="FIELD_REQUIRED")
            setattr(project, field, value)

        self._check_dates(project.start_date, project.end_date)
        await self.db.flush()

        [response] = await self._serialize([project])
        return response

    # -----------------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------------

    async def add_member(self, project_id: UUID, member_id: UUID, user: User) -> ProjectResponse:
        project = await self.containment.require_project_owner(project_id, user)
        await self.containment.ensure_users_exist([member_id])
        ensure_subset(
            [member_id], await self.authority.workspace_member_ids(project.workspace_id), "workspace"
        )
        if await self.authority.project_role(member_id, project.id) is not None:
            raise ConflictError("User is already a project member", code="ALREADY_A_MEMBER")

        self.db.add(ProjectMember(project_id=project.id, user_id=member_id))
        await self.db.flush()

        workspace = await self.db.scalar(select(Workspace).where(Workspace.id == project.workspace_id))
        self._notify_added(member_id, project, workspace, user)

        [response] = await self._serialize([project])
        return response

    async def remove_member(self, project_id: UUID, member_id: UUID, user: User) -> ProjectResponse:
        project = await self.containment.require_project_owner(project_id, user)
        role = await self.authority.project_role(member_id, project.id)
        if role is None:
            raise NotFoundError("User is not a project member", code="MEMBER_NOT_FOUND")
        if role == MemberRole.owner:
            raise ValidationError("The project owner cannot be removed", code="CANNOT_REMOVE_OWNER")

        await self.containment.remove_from_project(project, member_id)

        [response] = await self._serialize([project])
        return response

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete_project(self, project_id: UUID, user: User) -> None:
        """Delete the project with all of its tasks. Owner only."""
        project = await self.containment.require_project_owner(project_id, user)
        await self.containment.delete_project(project)
        logger.info("User %s deleted project %s", user.id, project_id)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _check_dates(start, end) -> None:
        if start is not None and end is not None and end < start:
            raise ValidationError("end_date must not be before start_date", code="INVALID_DATE_RANGE")

    def _notify_added(
        self, member_id: UUID, project: Project, workspace: Workspace | None, actor: User
    ) -> None:
        org_id = None
        if workspace is not None and workspace.context_type == ContextType.organization:
            org_id = workspace.context_id
        self.pipeline.notify_user(
            member_id,
            NotificationType.project_member_added,
            "Added to Project",
            f"{actor.display_name} added you to project: {project.name}",
            actor,
            related_project_id=project.id,
            related_organization_id=org_id,
        )

    async def _serialize(self, projects: list[Project]) -> list[ProjectResponse]:
        members = await load_members(
            self.db, ProjectMember, ProjectMember.project_id, [p.id for p in projects]
        )
        return [
            ProjectResponse(
                id=p.id,
                workspace_id=p.workspace_id,
                name=p.name,
                description=p.description,
                status=p.status,
                start_date=p.start_date,
                end_date=p.end_date,
                tags=list(p.tags or []),
                owner_id=owner_of(members[p.id]),
                members=members[p.id],
                created_at=p.created_at,
                updated_at=p.updated_at,
            )
            for p in projects
        ]
