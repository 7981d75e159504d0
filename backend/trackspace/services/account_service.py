"""
Account deletion.

A user who still owns an organization cannot delete their account; they
must transfer ownership first. Deletion is a soft delete: the user row is
kept (activity history still points at it) but deactivated and stripped
of personal data.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import redis.asyncio as aioredis
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.config import settings
from trackspace.core.exceptions import ConflictError
from trackspace.core.security import (
    access_token_jti,
    blacklist_redis_key,
    refresh_token_redis_pattern,
)
from trackspace.models.member import OrgMember
from trackspace.models.organization import PersonalSpace
from trackspace.models.project import ProjectMember
from trackspace.models.task import TaskAssignee, TaskWatcher
from trackspace.models.user import ContextType, User
from trackspace.models.workspace import Workspace, WorkspaceMember
from trackspace.schemas.auth import DeletionAssessmentResponse
from trackspace.services.activity_service import ActivityPipeline
from trackspace.services.notification_service import NotificationService
from trackspace.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)

DELETED_DISPLAY_NAME = "Deleted User"


class AccountService:
    """Handles account deletion and the checks that precede it."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis, pipeline: ActivityPipeline) -> None:
        self.db = db
        self.redis = redis
        self.organizations = OrganizationService(db, pipeline)

    # -----------------------------------------------------------------------
    # Deletion assessment
    # -----------------------------------------------------------------------

    async def deletion_assessment(self, user: User) -> DeletionAssessmentResponse:
        owned = await self.organizations.owned_organizations(user)
        organizations_count = await self.db.scalar(
            select(func.count(OrgMember.id)).where(OrgMember.user_id == user.id)
        ) or 0
        workspaces_count = await self.db.scalar(
            select(func.count(WorkspaceMember.id)).where(WorkspaceMember.user_id == user.id)
        ) or 0
        return DeletionAssessmentResponse(
            can_delete=not owned,
            owned_organizations=owned,
            organizations_count=organizations_count,
            workspaces_count=workspaces_count,
        )

    # -----------------------------------------------------------------------
    # Delete account
    # -----------------------------------------------------------------------

    async def delete_account(self, user: User, access_token: str) -> None:
        """
        Delete the caller's account.

        - Refuses while the user owns any organization
        - Leaves every organization
        - Cascade-deletes the personal space and its workspaces
        - Drops remaining memberships and received notifications
        - Revokes the access token and all refresh tokens
        - Deactivates and anonymises the user row
        """
        owned = await self.organizations.owned_organizations(user)
        if owned:
            names = ", ".join(o.name for o in owned)
            raise ConflictError(
                f"Transfer ownership of {names} before deleting your account",
                code="OWNS_ORGANIZATIONS",
            )

        await self.organizations.detach_from_all(user)

        space = await self.db.scalar(select(PersonalSpace).where(PersonalSpace.user_id == user.id))
        if space is not None:
            result = await self.db.scalars(
                select(Workspace).where(
                    Workspace.context_type == ContextType.personal,
                    Workspace.context_id == space.id,
                )
            )
            for workspace in result.all():
                await self.organizations.containment.delete_workspace(workspace)
            await self.db.execute(
                delete(PersonalSpace)
                .where(PersonalSpace.id == space.id)
                .execution_options(synchronize_session=False)
            )

        for model in (TaskAssignee, TaskWatcher, ProjectMember, WorkspaceMember):
            await self.db.execute(
                delete(model)
                .where(model.user_id == user.id)
                .execution_options(synchronize_session=False)
            )
        await NotificationService(self.db).delete_for_recipient(user.id)

        await self._revoke_tokens(user, access_token)

        user.email = f"deleted-{user.id}@deleted.invalid"
        user.display_name = DELETED_DISPLAY_NAME
        user.password_hash = None
        user.avatar_url = None
        user.is_active = False
        user.last_context_type = None
        user.last_context_id = None
        user.deleted_at = datetime.now(UTC)
        await self.db.flush()

        logger.info("Deleted account of user %s", user.id)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _revoke_tokens(self, user: User, access_token: str) -> None:
        await self.redis.setex(
            blacklist_redis_key(access_token_jti(access_token)),
            settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "1",
        )
        async for key in self.redis.scan_iter(match=refresh_token_redis_pattern(str(user.id))):
            await self.redis.delete(key)
