"""
Context resolution.

A context is either the caller's personal space or one organization. This
service decides which context a request runs in, persists the user's
choice, and lists the people inside a context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.exceptions import AuthorizationError, ValidationError
from trackspace.models.member import OrgMember, OrgRole
from trackspace.models.organization import Organization, PersonalSpace
from trackspace.models.user import ContextType, User
from trackspace.models.workspace import MemberRole, Workspace, WorkspaceMember
from trackspace.schemas.auth import UserSummaryResponse
from trackspace.schemas.context import (
    ContextMemberResponse,
    ContextMembersResponse,
    ContextResponse,
)
from trackspace.services.membership_service import MembershipAuthority

logger = logging.getLogger(__name__)

PERSONAL_SPACE_NAME = "Personal Space"
PERSONAL_WORKSPACE_NAME = "My Tasks"
PERSONAL_WORKSPACE_COLOR = "#3b82f6"
USER_SEARCH_LIMIT = 10


@dataclass(frozen=True)
class ResolvedContext:
    type: ContextType
    id: UUID
    name: str
    role: OrgRole

    def to_response(self) -> ContextResponse:
        return ContextResponse(type=self.type, id=self.id, name=self.name, role=self.role)


class ContextService:
    """Resolves and switches the caller's active context."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.authority = MembershipAuthority(db)

    # -----------------------------------------------------------------------
    # Personal space
    # -----------------------------------------------------------------------

    async def get_or_create_personal_space(self, user: User) -> PersonalSpace:
        """Return the user's personal space, creating it with a default workspace on first use."""
        space = await self.db.scalar(
            select(PersonalSpace).where(PersonalSpace.user_id == user.id)
        )
        if space is not None:
            return space

        space = PersonalSpace(user_id=user.id)
        self.db.add(space)
        await self.db.flush()

        workspace = Workspace(
            name=PERSONAL_WORKSPACE_NAME,
            description="Your personal tasks and projects",
            color=PERSONAL_WORKSPACE_COLOR,
            context_type=ContextType.personal,
            context_id=space.id,
        )
        self.db.add(workspace)
        await self.db.flush()
        self.db.add(
            WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=MemberRole.owner)
        )
        await self.db.flush()

        logger.info("Created personal space %s for user %s", space.id, user.id)
        return space

    # -----------------------------------------------------------------------
    # Resolve / switch
    # -----------------------------------------------------------------------

    async def resolve_context(
        self,
        user: User,
        context_type: ContextType | None = None,
        context_id: UUID | None = None,
    ) -> ResolvedContext:
        """
        Determine the context a request runs in.

        An explicitly requested context must be one the user belongs to;
        otherwise AuthorizationError. With no request, the persisted
        last-active context is used if still valid, else the personal space.
        """
        if (context_type is None) != (context_id is None):
            raise ValidationError(
                "context_type and context_id must be given together", code="INVALID_CONTEXT"
            )

        if context_type is not None and context_id is not None:
            role = await self.authority.context_role(user.id, context_type, context_id)
            if role is None:
                raise AuthorizationError(
                    "You do not have access to this context", code="CONTEXT_ACCESS_DENIED"
                )
            return await self._build(context_type, context_id, role)

        if user.last_context_type is not None and user.last_context_id is not None:
            role = await self.authority.context_role(
                user.id, user.last_context_type, user.last_context_id
            )
            if role is not None:
                return await self._build(user.last_context_type, user.last_context_id, role)

        space = await self.get_or_create_personal_space(user)
        return ResolvedContext(
            type=ContextType.personal,
            id=space.id,
            name=PERSONAL_SPACE_NAME,
            role=OrgRole.owner,
        )

    async def switch_context(
        self, user: User, context_type: ContextType, context_id: UUID
    ) -> ResolvedContext:
        """
        Verify access, then persist the choice on the user record.

        Workspace lookups that do not name a context read this pointer, so
        persisting it is what re-scopes them.
        """
        resolved = await self.resolve_context(user, context_type, context_id)
        user.last_context_type = resolved.type
        user.last_context_id = resolved.id
        await self.db.flush()
        logger.info(
            "User %s switched context to %s:%s", user.id, resolved.type.value, resolved.id
        )
        return resolved

    # -----------------------------------------------------------------------
    # Members / user search
    # -----------------------------------------------------------------------

    async def list_members(
        self,
        user: User,
        context_type: ContextType | None = None,
        context_id: UUID | None = None,
    ) -> ContextMembersResponse:
        """Members of a context with their roles; the active context when none is named."""
        resolved = await self.resolve_context(user, context_type, context_id)

        if resolved.type == ContextType.personal:
            members = [
                ContextMemberResponse(
                    user=UserSummaryResponse.model_validate(user),
                    role=OrgRole.owner,
                )
            ]
        else:
            result = await self.db.execute(
                select(OrgMember, User)
                .join(User, OrgMember.user_id == User.id)
                .where(OrgMember.org_id == resolved.id)
                .order_by(OrgMember.joined_at)
            )
            members = [
                ContextMemberResponse(
                    user=UserSummaryResponse.model_validate(member_user),
                    role=member.role,
                    joined_at=member.joined_at,
                )
                for member, member_user in result.all()
            ]

        return ContextMembersResponse(context=resolved.to_response(), members=members)

    async def search_users(
        self,
        user: User,
        query: str,
        context_type: ContextType | None = None,
        context_id: UUID | None = None,
    ) -> list[UserSummaryResponse]:
        """
        Find up to ten active users by display name or email.

        With a context, only that context's members are searched.
        """
        query = query.strip()
        if len(query) < 2:
            return []

        pattern = f"%{query}%"
        stmt = select(User).where(
            User.is_active.is_(True),
            or_(User.display_name.ilike(pattern), User.email.ilike(pattern)),
        )

        if context_type is not None or context_id is not None:
            resolved = await self.resolve_context(user, context_type, context_id)
            member_ids = await self.authority.context_member_ids(resolved.type, resolved.id)
            stmt = stmt.where(User.id.in_(list(member_ids)))

        result = await self.db.scalars(
            stmt.order_by(User.display_name).limit(USER_SEARCH_LIMIT)
        )
        return [UserSummaryResponse.model_validate(u) for u in result.all()]

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _build(
        self, context_type: ContextType, context_id: UUID, role: OrgRole
    ) -> ResolvedContext:
        if context_type == ContextType.personal:
            name = PERSONAL_SPACE_NAME
        else:
            name = await self.db.scalar(
                select(Organization.name).where(Organization.id == context_id)
            ) or ""
        return ResolvedContext(type=context_type, id=context_id, name=name, role=role)
