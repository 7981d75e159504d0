"""
ActivityLog ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from trackspace.models.base import Base, JSONType, UUIDMixin, utcnow


class ActivityAction(str, enum.Enum):
    created = "created"
    status_changed = "status_changed"
    priority_changed = "priority_changed"
    title_changed = "title_changed"
    description_changed = "description_changed"
    due_date_changed = "due_date_changed"
    assigned = "assigned"
    unassigned = "unassigned"
    watcher_added = "watcher_added"
    watcher_removed = "watcher_removed"
    comment_added = "comment_added"
    comment_reaction_added = "comment_reaction_added"
    comment_reaction_removed = "comment_reaction_removed"


class ActivityLog(Base, UUIDMixin):
    """
    Append-only audit log for task changes.

    Rows are never updated. They disappear only when their task is deleted.
    """

    __tablename__ = "activity_log"

    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    field: Mapped[str | None] = mapped_column(String(50), nullable=True)
    old_value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    new_value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    performed_by: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<ActivityLog id={self.id} action={self.action!r} task_id={self.task_id}>"
