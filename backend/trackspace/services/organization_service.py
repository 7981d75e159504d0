"""
Organization business logic.

Handles org creation, member management and ownership transfer.
Every organization has exactly one owner at all times.
"""

from __future__ import annotations

import logging
import re
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from trackspace.models.member import OrgMember, OrgRole
from trackspace.models.notification import NotificationType
from trackspace.models.organization import Organization
from trackspace.models.user import ContextType, User
from trackspace.models.workspace import MemberRole, Workspace, WorkspaceMember
from trackspace.schemas.auth import (
    OwnedOrganizationResponse,
    TransferOwnershipResponse,
    UserSummaryResponse,
)
from trackspace.schemas.organization import (
    OrganizationCreateRequest,
    OrganizationResponse,
    OrgMemberAddRequest,
    OrgMemberResponse,
)
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.containment_service import ContainmentManager
from trackspace.services.membership_service import (
    OrgAction,
    can_change_role,
    can_remove_member,
)

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE_NAME = "General"
DEFAULT_WORKSPACE_COLOR = "#10b981"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "organization"


class OrganizationService:
    """Handles all organization operations."""

    def __init__(self, db: AsyncSession, pipeline: ActivityPipeline) -> None:
        self.db = db
        self.pipeline = pipeline
        self.containment = ContainmentManager(db)
        self.authority = self.containment.authority

    # -----------------------------------------------------------------------
    # Create Organization
    # -----------------------------------------------------------------------

    async def create_organization(
        self, data: OrganizationCreateRequest, owner: User
    ) -> OrganizationResponse:
        """
        Create a new organization.

        - Derives a unique slug from the name
        - Assigns creator as Owner
        - Creates the default "General" workspace
        """
        name = data.name.strip()
        if not name:
            raise ValidationError("Organization name is required", code="NAME_REQUIRED")

        org = Organization(
            name=name,
            slug=await self._unique_slug(slugify(name)),
            description=data.description.strip() if data.description else None,
        )
        self.db.add(org)
        await self.db.flush()

        self.db.add(OrgMember(org_id=org.id, user_id=owner.id, role=OrgRole.owner))

        workspace = Workspace(
            name=DEFAULT_WORKSPACE_NAME,
            description=f"Default workspace for {name}",
            color=DEFAULT_WORKSPACE_COLOR,
            context_type=ContextType.organization,
            context_id=org.id,
        )
        self.db.add(workspace)
        await self.db.flush()
        self.db.add(WorkspaceMember(workspace_id=workspace.id, user_id=owner.id, role=MemberRole.owner))
        await self.db.flush()

        logger.info("User %s created organization %s (%s)", owner.id, org.id, org.slug)
        return self._to_response(org, OrgRole.owner, 1)

    # -----------------------------------------------------------------------
    # List Organizations
    # -----------------------------------------------------------------------

    async def list_organizations(self, user: User) -> list[OrganizationResponse]:
        """Organizations the caller belongs to, with their role and member count."""
        member_count = (
            select(func.count(OrgMember.id))
            .where(OrgMember.org_id == Organization.id)
            .correlate(Organization)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(Organization, OrgMember.role, member_count)
            .join(OrgMember, OrgMember.org_id == Organization.id)
            .where(OrgMember.user_id == user.id)
            .order_by(Organization.name)
        )
        return [self._to_response(org, role, count) for org, role, count in result.all()]

    # -----------------------------------------------------------------------
    # List Members
    # -----------------------------------------------------------------------

    async def list_members(self, org_id: UUID, user: User) -> list[OrgMemberResponse]:
        """List all members of an organization with user details."""
        await self._get_org(org_id)
        await self.authority.require(user, ContextType.organization, org_id)

        result = await self.db.execute(
            select(OrgMember, User)
            .join(User, OrgMember.user_id == User.id)
            .where(OrgMember.org_id == org_id)
            .order_by(OrgMember.joined_at)
        )
        return [self._member_response(member, member_user) for member, member_user in result.all()]

    # -----------------------------------------------------------------------
    # Add Member
    # -----------------------------------------------------------------------

    async def add_member(
        self, org_id: UUID, data: OrgMemberAddRequest, actor: User
    ) -> OrgMemberResponse:
        """Add an existing user, found by email, as admin or member. Owner or admin only."""
        org = await self._get_org(org_id)
        await self.authority.require(actor, ContextType.organization, org_id, OrgAction.add_member)

        new_user = await self.db.scalar(
            select(User).where(User.email == data.email.lower(), User.is_active.is_(True))
        )
        if new_user is None:
            raise NotFoundError("No user with this email", code="USER_NOT_FOUND")

        if await self.authority.role_of(new_user.id, org_id) is not None:
            raise ConflictError(
                "User is already a member of this organization", code="ALREADY_A_MEMBER"
            )

        member = OrgMember(org_id=org_id, user_id=new_user.id, role=OrgRole(data.role))
        self.db.add(member)
        await self.db.flush()

        self.pipeline.notify_user(
            new_user.id,
            NotificationType.org_member_added,
            "Added to Organization",
            f"{actor.display_name} added you to {org.name} as {member.role.value}",
            actor,
            related_organization_id=org_id,
        )
        return self._member_response(member, new_user)

    # -----------------------------------------------------------------------
    # Update Member Role
    # -----------------------------------------------------------------------

    async def update_member_role(
        self, org_id: UUID, target_user_id: UUID, new_role: str, actor: User
    ) -> OrgMemberResponse:
        """
        Change a member's role between admin and member.

        Owner only. The owner's own role moves only through a transfer.
        """
        org = await self._get_org(org_id)
        actor_role = await self.authority.require(actor, ContextType.organization, org_id)
        target_member, target_user = await self._get_member(org_id, target_user_id)

        role = OrgRole(new_role)
        if not can_change_role(actor_role, target_member.role, role):
            if target_member.role == OrgRole.owner:
                raise AuthorizationError(
                    "The owner's role changes only by transferring ownership",
                    code="CANNOT_CHANGE_OWNER",
                )
            raise AuthorizationError(
                "Only the organization owner can change roles", code="INSUFFICIENT_ROLE"
            )

        target_member.role = role
        await self.db.flush()

        self.pipeline.notify_user(
            target_user.id,
            NotificationType.org_role_updated,
            "Role Updated",
            f"Your role in {org.name} is now {role.value}",
            actor,
            related_organization_id=org_id,
        )
        return self._member_response(target_member, target_user)

    # -----------------------------------------------------------------------
    # Remove Member / Leave
    # -----------------------------------------------------------------------

    async def remove_member(self, org_id: UUID, target_user_id: UUID, actor: User) -> None:
        """Remove a non-owner member. Owner or admin only."""
        await self._get_org(org_id)
        actor_role = await self.authority.require(actor, ContextType.organization, org_id)
        target_member, _ = await self._get_member(org_id, target_user_id)

        if target_member.role == OrgRole.owner:
            raise AuthorizationError(
                "Cannot remove the organization owner", code="CANNOT_REMOVE_OWNER"
            )
        if not can_remove_member(actor_role, target_member.role):
            raise AuthorizationError(
                "Only owners and admins can remove members", code="INSUFFICIENT_ROLE"
            )

        await self._detach(org_id, target_member)

    async def leave(self, org_id: UUID, user: User) -> None:
        """Leave an organization. The owner must transfer ownership first."""
        await self._get_org(org_id)
        member, _ = await self._get_member(org_id, user.id)
        if member.role == OrgRole.owner:
            raise ValidationError(
                "Organization owners cannot leave; transfer ownership first",
                code="OWNER_CANNOT_LEAVE",
            )
        await self._detach(org_id, member)

    # -----------------------------------------------------------------------
    # Ownership
    # -----------------------------------------------------------------------

    async def transfer_ownership(
        self, org_id: UUID, new_owner_id: UUID, actor: User
    ) -> TransferOwnershipResponse:
        """
        Hand the organization to another member.

        The previous owner stays on as a plain member.
        """
        await self._get_org(org_id)
        await self.authority.require(
            actor, ContextType.organization, org_id, OrgAction.transfer_ownership
        )
        if new_owner_id == actor.id:
            raise ValidationError("You already own this organization", code="ALREADY_OWNER")

        current, _ = await self._get_member(org_id, actor.id)
        successor = await self.db.scalar(
            select(OrgMember).where(OrgMember.org_id == org_id, OrgMember.user_id == new_owner_id)
        )
        if successor is None:
            raise ConflictError(
                "New owner must be a member of the organization", code="NOT_A_MEMBER"
            )

        # Demote first so the single-owner index never sees two owners
        current.role = OrgRole.member
        await self.db.flush()
        successor.role = OrgRole.owner
        await self.db.flush()

        logger.info(
            "Ownership of organization %s transferred from %s to %s", org_id, actor.id, new_owner_id
        )
        return TransferOwnershipResponse(
            organization_id=org_id, previous_owner_id=actor.id, new_owner_id=new_owner_id
        )

    async def owned_organizations(self, user: User) -> list[OwnedOrganizationResponse]:
        """Organizations the user owns, each with the other members ownership could go to."""
        result = await self.db.scalars(
            select(Organization)
            .join(OrgMember, OrgMember.org_id == Organization.id)
            .where(OrgMember.user_id == user.id, OrgMember.role == OrgRole.owner)
            .order_by(Organization.name)
        )
        owned = []
        for org in result.all():
            others = await self.db.scalars(
                select(User)
                .join(OrgMember, OrgMember.user_id == User.id)
                .where(OrgMember.org_id == org.id, User.id != user.id)
                .order_by(OrgMember.joined_at)
            )
            owned.append(
                OwnedOrganizationResponse(
                    id=org.id,
                    name=org.name,
                    slug=org.slug,
                    members=[UserSummaryResponse.model_validate(u) for u in others.all()],
                )
            )
        return owned

    async def detach_from_all(self, user: User) -> int:
        """Remove a non-owner user from every organization they belong to."""
        result = await self.db.scalars(select(OrgMember).where(OrgMember.user_id == user.id))
        memberships = list(result.all())
        for member in memberships:
            await self._detach(member.org_id, member)
        return len(memberships)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _unique_slug(self, base: str) -> str:
        slug, counter = base, 1
        while await self.db.scalar(select(Organization.id).where(Organization.slug == slug)):
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    async def _get_org(self, org_id: UUID) -> Organization:
        org = await self.db.scalar(select(Organization).where(Organization.id == org_id))
        if org is None:
            raise NotFoundError("Organization not found", code="ORG_NOT_FOUND")
        return org

    async def _get_member(self, org_id: UUID, user_id: UUID) -> tuple[OrgMember, User]:
        row = (
            await self.db.execute(
                select(OrgMember, User)
                .join(User, OrgMember.user_id == User.id)
                .where(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
            )
        ).one_or_none()
        if row is None:
            raise NotFoundError("Member not found", code="MEMBER_NOT_FOUND")
        return row[0], row[1]

    async def _detach(self, org_id: UUID, member: OrgMember) -> None:
        owner_id = await self.db.scalar(
            select(OrgMember.user_id).where(
                OrgMember.org_id == org_id, OrgMember.role == OrgRole.owner
            )
        )
        await self.containment.hand_over_memberships(org_id, member.user_id, owner_id)
        await self.db.execute(
            delete(OrgMember)
            .where(OrgMember.id == member.id)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _to_response(org: Organization, role: OrgRole, member_count: int) -> OrganizationResponse:
        return OrganizationResponse(
            id=org.id,
            name=org.name,
            slug=org.slug,
            description=org.description,
            role=role,
            member_count=member_count,
            created_at=org.created_at,
        )

    @staticmethod
    def _member_response(member: OrgMember, user: User) -> OrgMemberResponse:
        return OrgMemberResponse(
            user_id=user.id,
            display_name=user.display_name,
            email=user.email,
            avatar_url=user.avatar_url,
            role=member.role,
            joined_at=member.joined_at,
        )
