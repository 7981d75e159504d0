"""
Membership and role authority.

Answers two questions for every mutating operation:
- which role does a user hold in an organization, workspace or project
- does that role permit the requested organization-level action

Role ranking is owner > admin > member. A personal space behaves like a
single-member organization whose only member is its owner.
"""

from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.exceptions import AuthorizationError
from trackspace.models.member import OrgMember, OrgRole
from trackspace.models.organization import PersonalSpace
from trackspace.models.project import ProjectMember
from trackspace.models.user import ContextType, User
from trackspace.models.workspace import MemberRole, WorkspaceMember


class OrgAction(str, enum.Enum):
    view = "view"
    create_workspace = "create_workspace"
    add_member = "add_member"
    remove_member = "remove_member"
    change_role = "change_role"
    transfer_ownership = "transfer_ownership"


MINIMUM_ROLE: dict[OrgAction, OrgRole] = {
    OrgAction.view: OrgRole.member,
    OrgAction.create_workspace: OrgRole.member,
    OrgAction.add_member: OrgRole.admin,
    OrgAction.remove_member: OrgRole.admin,
    OrgAction.change_role: OrgRole.owner,
    OrgAction.transfer_ownership: OrgRole.owner,
}


# ---------------------------------------------------------------------------
# Pure role rules
# ---------------------------------------------------------------------------

def role_allows(role: OrgRole | None, action: OrgAction) -> bool:
    if role is None:
        return False
    return role.rank >= MINIMUM_ROLE[action].rank


def can_remove_member(actor_role: OrgRole | None, target_role: OrgRole) -> bool:
    """Owners and admins remove non-owners. Nobody removes the single owner."""
    if target_role == OrgRole.owner:
        return False
    return role_allows(actor_role, OrgAction.remove_member)


def can_change_role(actor_role: OrgRole | None, target_role: OrgRole, new_role: OrgRole) -> bool:
    """Only the owner changes roles, and never into or out of owner; that is a transfer."""
    if not role_allows(actor_role, OrgAction.change_role):
        return False
    return target_role != OrgRole.owner and new_role != OrgRole.owner


class MembershipAuthority:
    """Role lookups backed by the membership tables."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Organization / context roles
    # -----------------------------------------------------------------------

    async def role_of(self, user_id: UUID, org_id: UUID) -> OrgRole | None:
        return await self.db.scalar(
            select(OrgMember.role).where(
                OrgMember.org_id == org_id,
                OrgMember.user_id == user_id,
            )
        )

    async def context_role(
        self, user_id: UUID, context_type: ContextType, context_id: UUID
    ) -> OrgRole | None:
        if context_type == ContextType.personal:
            owner_id = await self.db.scalar(
                select(PersonalSpace.user_id).where(PersonalSpace.id == context_id)
            )
            return OrgRole.owner if owner_id == user_id else None
        return await self.role_of(user_id, context_id)

    async def authorize(
        self,
        user: User,
        context_type: ContextType,
        context_id: UUID,
        action: OrgAction,
    ) -> bool:
        role = await self.context_role(user.id, context_type, context_id)
        return role_allows(role, action)

    async def require(
        self,
        user: User,
        context_type: ContextType,
        context_id: UUID,
        action: OrgAction = OrgAction.view,
    ) -> OrgRole:
        """Return the caller's role, or raise AuthorizationError if it is insufficient."""
        role = await self.context_role(user.id, context_type, context_id)
        if role is None:
            raise AuthorizationError(
                "You are not a member of this context", code="NOT_A_MEMBER"
            )
        if not role_allows(role, action):
            raise AuthorizationError(
                f"Required role: {MINIMUM_ROLE[action].value}", code="INSUFFICIENT_ROLE"
            )
        return role

    async def context_member_ids(
        self, context_type: ContextType, context_id: UUID
    ) -> set[UUID]:
        if context_type == ContextType.personal:
            owner_id = await self.db.scalar(
                select(PersonalSpace.user_id).where(PersonalSpace.id == context_id)
            )
            return {owner_id} if owner_id is not None else set()
        result = await self.db.scalars(
            select(OrgMember.user_id).where(OrgMember.org_id == context_id)
        )
        return set(result.all())

    # -----------------------------------------------------------------------
    # Workspace / project roles
    # -----------------------------------------------------------------------

    async def workspace_role(self, user_id: UUID, workspace_id: UUID) -> MemberRole | None:
        return await self.db.scalar(
            select(WorkspaceMember.role).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )

    async def project_role(self, user_id: UUID, project_id: UUID) -> MemberRole | None:
        return await self.db.scalar(
            select(ProjectMember.role).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )

    async def workspace_member_ids(self, workspace_id: UUID) -> set[UUID]:
        result = await self.db.scalars(
            select(WorkspaceMember.user_id).where(WorkspaceMember.workspace_id == workspace_id)
        )
        return set(result.all())

    async def project_member_ids(self, project_id: UUID) -> set[UUID]:
        result = await self.db.scalars(
            select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
        )
        return set(result.all())
