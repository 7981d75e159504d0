"""
Activity and notification pipeline.

Every task mutation goes through ActivityPipeline.record_and_notify:

1. The activity row is added and flushed in the caller's transaction.
   Errors here propagate and fail the mutation.
2. Recipients are computed (watchers, assignees and mentioned members,
   minus the actor) and one notification per recipient is handed to the
   enqueuer. Anything that goes wrong in this step is logged and swallowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.models.activity_log import ActivityAction, ActivityLog
from trackspace.models.notification import NotificationType
from trackspace.models.task import Task, TaskAssignee, TaskWatcher
from trackspace.models.user import User
from trackspace.schemas.notification import NotificationCreate

logger = logging.getLogger(__name__)

NotificationEnqueuer = Callable[[dict[str, Any]], Any]

# Notification type used for ordinary recipients of each action
DEFAULT_NOTIFICATION_TYPE: dict[ActivityAction, NotificationType] = {
    ActivityAction.created: NotificationType.task_updated,
    ActivityAction.comment_added: NotificationType.comment_added,
}

FIELD_LABELS: dict[str, str] = {
    "status": "status",
    "priority": "priority",
    "title": "title",
    "description": "description",
    "due_date": "due date",
}


def describe_event(
    action: ActivityAction,
    notification_type: NotificationType,
    actor_name: str,
    task_title: str,
    field: str | None = None,
    new_value: Any = None,
) -> tuple[str, str]:
    """Return the (title, message) pair shown to a recipient."""
    if notification_type == NotificationType.mentioned:
        return (
            "You were mentioned",
            f"{actor_name} mentioned you in a comment on task: {task_title}",
        )
    if notification_type == NotificationType.task_assigned:
        return "New Task Assigned", f"You have been assigned to task: {task_title}"
    if notification_type == NotificationType.comment_added:
        return "New Comment", f"{actor_name} commented on task: {task_title}"

    if action == ActivityAction.created:
        message = f"{actor_name} created task: {task_title}"
    elif field in FIELD_LABELS and new_value is not None:
        message = f'{actor_name} changed the {FIELD_LABELS[field]} of "{task_title}" to {new_value}'
    elif field in FIELD_LABELS:
        message = f'{actor_name} cleared the {FIELD_LABELS[field]} of "{task_title}"'
    else:
        message = f'{actor_name} updated "{task_title}" ({action.value.replace("_", " ")})'
    return "Task Updated", message


class ActivityPipeline:
    """Records task activity and fans out notifications."""

    def __init__(self, db: AsyncSession, enqueue: NotificationEnqueuer) -> None:
        self.db = db
        self.enqueue = enqueue

    # -----------------------------------------------------------------------
    # Task events
    # -----------------------------------------------------------------------

    async def record_and_notify(
        self,
        task: Task,
        action: ActivityAction,
        actor: User,
        *,
        field: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        details: str | None = None,
        extra: dict[str, Any] | None = None,
        comment_id: UUID | None = None,
        mentioned: Iterable[UUID] = (),
        assigned: Iterable[UUID] = (),
    ) -> ActivityLog:
        entry = ActivityLog(
            task_id=task.id,
            action=action.value,
            field=field,
            old_value=old_value,
            new_value=new_value,
            details=details,
            extra=extra,
            performed_by=actor.id,
        )
        self.db.add(entry)
        await self.db.flush()

        try:
            await self._notify_task_audience(
                task=task,
                action=action,
                actor=actor,
                field=field,
                new_value=new_value,
                comment_id=comment_id,
                mentioned=set(mentioned),
                assigned=set(assigned),
            )
        except Exception:
            logger.exception(
                "Notification fan-out failed for task %s (%s)", task.id, action.value
            )

        return entry

    async def recipients_for(
        self,
        task_id: UUID,
        actor_id: UUID,
        mentioned: set[UUID] = frozenset(),
    ) -> set[UUID]:
        """Watchers, assignees and mentioned users of a task, minus the actor."""
        watchers = await self.db.scalars(
            select(TaskWatcher.user_id).where(TaskWatcher.task_id == task_id)
        )
        assignees = await self.db.scalars(
            select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)
        )
        audience = set(watchers.all()) | set(assignees.all()) | set(mentioned)
        audience.discard(actor_id)
        return audience

    async def _notify_task_audience(
        self,
        task: Task,
        action: ActivityAction,
        actor: User,
        field: str | None,
        new_value: Any,
        comment_id: UUID | None,
        mentioned: set[UUID],
        assigned: set[UUID],
    ) -> None:
        audience = await self.recipients_for(task.id, actor.id, mentioned)
        default_type = DEFAULT_NOTIFICATION_TYPE.get(action, NotificationType.task_updated)

        for recipient_id in sorted(audience, key=str):
            # One notification per recipient; the most specific reason wins
            if recipient_id in mentioned:
                notification_type = NotificationType.mentioned
            elif recipient_id in assigned:
                notification_type = NotificationType.task_assigned
            else:
                notification_type = default_type

            title, message = describe_event(
                action, notification_type, actor.display_name, task.title, field, new_value
            )
            try:
                self._send(
                    NotificationCreate(
                        recipient_id=recipient_id,
                        sender_id=actor.id,
                        sender_name=actor.display_name,
                        type=notification_type,
                        title=title,
                        message=message,
                        related_task_id=task.id,
                        related_comment_id=comment_id,
                        related_project_id=task.project_id,
                    )
                )
            except Exception:
                logger.exception(
                    "Failed to enqueue %s notification for user %s",
                    notification_type.value,
                    recipient_id,
                )

    # -----------------------------------------------------------------------
    # Organization / project events
    # -----------------------------------------------------------------------

    def notify_user(
        self,
        recipient_id: UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        actor: User,
        related_project_id: UUID | None = None,
        related_organization_id: UUID | None = None,
    ) -> None:
        """Best-effort single notification for membership events. Never raises."""
        if recipient_id == actor.id:
            return
        try:
            self._send(
                NotificationCreate(
                    recipient_id=recipient_id,
                    sender_id=actor.id,
                    sender_name=actor.display_name,
                    type=notification_type,
                    title=title,
                    message=message,
                    related_project_id=related_project_id,
                    related_organization_id=related_organization_id,
                )
            )
        except Exception:
            logger.exception(
                "Failed to enqueue %s notification for user %s",
                notification_type.value,
                recipient_id,
            )

    def _send(self, notification: NotificationCreate) -> None:
        self.enqueue(notification.model_dump(mode="json"))
