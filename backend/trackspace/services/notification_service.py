"""
Business logic for notifications.

Handles creation (from the worker) and read-state management.
Every query is scoped to the recipient; notifications are per user and
span all of that user's contexts.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.core.exceptions import NotFoundError
from trackspace.models.notification import Notification
from trackspace.schemas.notification import (
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
)


class NotificationService:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Create a notification record in the DB
    # Called from the notification worker
    # ------------------------------------------------------------------

    async def create(self, data: NotificationCreate) -> Notification:
        notification = Notification(
            recipient_id=data.recipient_id,
            sender_id=data.sender_id,
            sender_name=data.sender_name,
            type=data.type,
            title=data.title,
            message=data.message,
            related_task_id=data.related_task_id,
            related_comment_id=data.related_comment_id,
            related_project_id=data.related_project_id,
            related_organization_id=data.related_organization_id,
            is_read=False,
        )
        self._db.add(notification)
        await self._db.flush()
        return notification

    # ------------------------------------------------------------------
    # GET /notifications
    # ------------------------------------------------------------------

    async def list_notifications(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> NotificationListResponse:
        """
        List notifications for the current user, newest first.
        Optionally filter to unread only.
        """
        base_stmt = select(Notification).where(Notification.recipient_id == user_id)

        if unread_only:
            base_stmt = base_stmt.where(Notification.is_read.is_(False))

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = await self._db.scalar(count_stmt) or 0

        # Unread count (always, regardless of filter)
        unread_count = await self.unread_count(user_id)

        rows_stmt = (
            base_stmt
            .order_by(Notification.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self._db.execute(rows_stmt)
        notifications = result.scalars().all()

        return NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            total=total,
            unread_count=unread_count,
        )

    # ------------------------------------------------------------------
    # GET /notifications/unread-count
    # ------------------------------------------------------------------

    async def unread_count(self, user_id: uuid.UUID) -> int:
        return await self._db.scalar(
            select(func.count()).where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        ) or 0

    # ------------------------------------------------------------------
    # PATCH /notifications/{id}/read
    # ------------------------------------------------------------------

    async def mark_read(
        self,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> NotificationResponse:
        """
        Mark a single notification as read.
        Scoped to the recipient to prevent cross-user updates.
        """
        notification = await self._db.scalar(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
        )
        if notification is None:
            raise NotFoundError("Notification not found.", code="NOTIFICATION_NOT_FOUND")

        notification.is_read = True
        await self._db.flush()
        return NotificationResponse.model_validate(notification)

    # ------------------------------------------------------------------
    # PATCH /notifications/mark-all-read
    # ------------------------------------------------------------------

    async def mark_all_read(self, user_id: uuid.UUID) -> dict[str, int]:
        """Mark all unread notifications as read. Returns count of updated rows."""
        result = await self._db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return {"updated": result.rowcount}

    # ------------------------------------------------------------------
    # Account deletion
    # ------------------------------------------------------------------

    async def delete_for_recipient(self, user_id: uuid.UUID) -> int:
        result = await self._db.execute(
            delete(Notification)
            .where(Notification.recipient_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
