"""
Pydantic schemas for notifications.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from trackspace.models.notification import NotificationType


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------

class NotificationResponse(BaseModel):
    """Single notification response."""
    id: uuid.UUID
    recipient_id: uuid.UUID
    sender_id: uuid.UUID | None
    sender_name: str | None
    type: NotificationType
    title: str
    message: str
    related_task_id: uuid.UUID | None
    related_comment_id: uuid.UUID | None
    related_project_id: uuid.UUID | None
    related_organization_id: uuid.UUID | None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Response for GET /notifications."""
    notifications: list[NotificationResponse]
    total: int
    unread_count: int


class UnreadCountResponse(BaseModel):
    count: int


# ---------------------------------------------------------------------------
# Internal schema: the payload queued for the notification worker
# ---------------------------------------------------------------------------

class NotificationCreate(BaseModel):
    """Internal schema for creating a notification (not exposed via API)."""
    recipient_id: uuid.UUID
    sender_id: uuid.UUID | None = None
    sender_name: str | None = None
    type: NotificationType
    title: str
    message: str
    related_task_id: uuid.UUID | None = None
    related_comment_id: uuid.UUID | None = None
    related_project_id: uuid.UUID | None = None
    related_organization_id: uuid.UUID | None = None
