"""
ORM model for notifications table.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from trackspace.models.base import Base, UUIDMixin, utcnow


class NotificationType(str, enum.Enum):
    task_assigned = "task_assigned"
    task_updated = "task_updated"
    mentioned = "mentioned"
    comment_added = "comment_added"
    org_member_added = "org_member_added"
    org_role_updated = "org_role_updated"
    project_member_added = "project_member_added"


class Notification(Base, UUIDMixin):
    """
    Per-user event record, independent of the activity log.

    Related ids are plain columns: a notification outlives the task or
    project it points at, and the worker may insert it before the request
    that produced it has committed.
    """

    __tablename__ = "notifications"

    recipient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    sender_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_task_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    related_comment_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    related_project_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    related_organization_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.type.value} recipient_id={self.recipient_id}>"
