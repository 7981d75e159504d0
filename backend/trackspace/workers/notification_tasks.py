"""
Notification background tasks.

The request hands each notification payload to enqueue_notification; the
worker inserts the row. Clients pick it up on their next poll.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from trackspace.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def enqueue_notification(payload: dict[str, Any]) -> None:
    """Fire-and-forget: queue one notification for the worker."""
    dispatch_notification.delay(payload)


@celery_app.task(
    name="trackspace.workers.notification_tasks.dispatch_notification",
    bind=True,
    max_retries=3,
    default_retry_delay=10,
)
def dispatch_notification(self, payload: dict[str, Any]) -> dict[str, str]:
    """Insert one notification row. Retried on failure, never reported to the caller."""
    try:
        # Always create a fresh event loop; forked workers may inherit a closed one
        from trackspace.core.database import async_engine
        async_engine.sync_engine.dispose()

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            notification_id = loop.run_until_complete(_create_notification(payload))
        finally:
            loop.close()
        return {"status": "stored", "id": notification_id}
    except Exception as exc:
        logger.error(
            "dispatch_notification failed for recipient %s: %s",
            payload.get("recipient_id"),
            exc,
        )
        raise self.retry(exc=exc)


async def store_notification(session: AsyncSession, payload: dict[str, Any]) -> str:
    """Validate a queued payload and insert it through NotificationService."""
    from trackspace.schemas.notification import NotificationCreate
    from trackspace.services.notification_service import NotificationService

    data = NotificationCreate.model_validate(payload)
    notification = await NotificationService(db=session).create(data)
    return str(notification.id)


async def _create_notification(payload: dict[str, Any]) -> str:
    from trackspace.core.database import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        notification_id = await store_notification(session, payload)
        await session.commit()
    return notification_id
