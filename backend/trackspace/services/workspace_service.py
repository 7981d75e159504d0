"""
Workspace business logic.

A workspace lives in exactly one context. Its creator is the owner; the
other members must belong to the same context.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.exceptions import ConflictError, NotFoundError, ValidationError
from trackspace.models.user import ContextType, User
from trackspace.models.workspace import MemberRole, Workspace, WorkspaceMember
from trackspace.schemas.auth import UserSummaryResponse
from trackspace.schemas.workspace import (
    MemberResponse,
    WorkspaceCreateRequest,
    WorkspaceResponse,
    WorkspaceUpdateRequest,
)
from trackspace.services.containment_service import ContainmentManager, ensure_subset
from trackspace.services.context_service import ContextService
from trackspace.services.membership_service import OrgAction

logger = logging.getLogger(__name__)


async def load_members(
    db: AsyncSession, member_model: Any, parent_column: Any, parent_ids: Iterable[UUID]
) -> dict[UUID, list[MemberResponse]]:
    """
    Load {user, role} entries for several containers at once.

    Works for WorkspaceMember and ProjectMember. The owner is listed first,
    then members in joining order.
    """
    ids = list(parent_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(parent_column, member_model.role, User)
        .join(User, User.id == member_model.user_id)
        .where(parent_column.in_(ids))
        .order_by(member_model.joined_at)
    )
    grouped: dict[UUID, list[MemberResponse]] = {i: [] for i in ids}
    for parent_id, role, user in result.all():
        grouped[parent_id].append(
            MemberResponse(user=UserSummaryResponse.model_validate(user), role=role)
        )
    for entries in grouped.values():
        entries.sort(key=lambda m: m.role != MemberRole.owner)
    return grouped


def owner_of(members: list[MemberResponse]) -> UUID | None:
    return next((m.user.id for m in members if m.role == MemberRole.owner), None)


class WorkspaceService:
    """Handles all workspace operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.containment = ContainmentManager(db)
        self.authority = self.containment.authority
        self.contexts = ContextService(db)

    # -----------------------------------------------------------------------
    # List / Get
    # -----------------------------------------------------------------------

    async def list_workspaces(
        self,
        user: User,
        context_type: ContextType | None = None,
        context_id: UUID | None = None,
    ) -> list[WorkspaceResponse]:
        """
        Workspaces the caller belongs to inside one context, newest first.

        Without context parameters the caller's active context is used.
        """
        context = await self.contexts.resolve_context(user, context_type, context_id)
        result = await self.db.scalars(
            select(Workspace)
            .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
            .where(
                Workspace.context_type == context.type,
                Workspace.context_id == context.id,
                WorkspaceMember.user_id == user.id,
            )
            .order_by(Workspace.created_at.desc())
        )
        return await self._serialize(list(result.all()))

    async def get_workspace(self, workspace_id: UUID, user: User) -> WorkspaceResponse:
        workspace = await self.containment.get_workspace(workspace_id, user)
        [response] = await self._serialize([workspace])
        return response

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create_workspace(self, data: WorkspaceCreateRequest, user: User) -> WorkspaceResponse:
        """
        Create a workspace in a context the caller belongs to.

        The caller becomes the owner. Listed members must belong to the context.
        """
        await self.authority.require(
            user, data.context_type, data.context_id, OrgAction.create_workspace
        )

        name = data.name.strip()
        if not name:
            raise ValidationError("Workspace name is required", code="NAME_REQUIRED")

        members = [m for m in dict.fromkeys(data.members) if m != user.id]
        await self.containment.ensure_users_exist(members)
        ensure_subset(
            members,
            await self.authority.context_member_ids(data.context_type, data.context_id),
            data.context_type.value,
        )

        workspace = Workspace(
            name=name,
            description=data.description.strip() if data.description else None,
            color=data.color,
            context_type=data.context_type,
            context_id=data.context_id,
        )
        self.db.add(workspace)
        await self.db.flush()

        self.db.add(WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=MemberRole.owner))
        for member_id in members:
            self.db.add(WorkspaceMember(workspace_id=workspace.id, user_id=member_id))
        await self.db.flush()

        logger.info("User %s created workspace %s", user.id, workspace.id)
        [response] = await self._serialize([workspace])
        return response

    # -----------------------------------------------------------------------
    # Update
    # -----------------------------------------------------------------------

    async def update_workspace(
        self, workspace_id: UUID, data: WorkspaceUpdateRequest, user: User
    ) -> WorkspaceResponse:
        workspace = await self.containment.require_workspace_owner(workspace_id, user)
        sent = data.model_fields_set

        if "name" in sent:
            name = (data.name or "").strip()
            if not name:
                raise ValidationError("Workspace name cannot be empty", code="NAME_REQUIRED")
            workspace.name = name
        if "description" in sent:
            workspace.description = data.description.strip() if data.description else None
        if "color" in sent:
            if data.color is None:
                raise ValidationError("Color cannot be empty", code="FIELD_REQUIRED")
            workspace.color = data.color

        await self.db.flush()
        [response] = await self._serialize([workspace])
        return response

    # -----------------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------------

    async def add_member(self, workspace_id: UUID, member_id: UUID, user: User) -> WorkspaceResponse:
        workspace = await self.containment.require_workspace_owner(workspace_id, user)
        await self.containment.ensure_users_exist([member_id])
        ensure_subset(
            [member_id],
            await self.authority.context_member_ids(workspace.context_type, workspace.context_id),
            workspace.context_type.value,
        )
        if await self.authority.workspace_role(member_id, workspace.id) is not None:
            raise ConflictError("User is already a workspace member", code="ALREADY_A_MEMBER")

        self.db.add(WorkspaceMember(workspace_id=workspace.id, user_id=member_id))
        await self.db.flush()

        [response] = await self._serialize([workspace])
        return response

    async def remove_member(
        self, workspace_id: UUID, member_id: UUID, user: User
    ) -> WorkspaceResponse:
        workspace = await self.containment.require_workspace_owner(workspace_id, user)
        role = await self.authority.workspace_role(member_id, workspace.id)
        if role is None:
            raise NotFoundError("User is not a workspace member", code="MEMBER_NOT_FOUND")
        if role == MemberRole.owner:
            raise ValidationError("The workspace owner cannot be removed", code="CANNOT_REMOVE_OWNER")

        # Projects the member owned here pass to the workspace owner
        await self.containment.remove_from_workspace(workspace, member_id, heir_id=user.id)

        [response] = await self._serialize([workspace])
        return response

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete_workspace(self, workspace_id: UUID, user: User) -> None:
        """Delete the workspace and everything under it. Owner only."""
        workspace = await self.containment.require_workspace_owner(workspace_id, user)
        await self.containment.delete_workspace(workspace)
        logger.info("User %s deleted workspace %s", user.id, workspace_id)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _serialize(self, workspaces: list[Workspace]) -> list[WorkspaceResponse]:
        members = await load_members(
            self.db, WorkspaceMember, WorkspaceMember.workspace_id, [w.id for w in workspaces]
        )
        return [
            WorkspaceResponse(
                id=w.id,
                name=w.name,
                description=w.description,
                color=w.color,
                context_type=w.context_type,
                context_id=w.context_id,
                owner_id=owner_of(members[w.id]),
                members=members[w.id],
                created_at=w.created_at,
                updated_at=w.updated_at,
            )
            for w in workspaces
        ]
