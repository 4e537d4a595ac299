"""
Matchcore — Notification Sink

The default sink records an in-app ``Notification`` row.  Delivery (push,
email) belongs to the notification subsystem, which reads that table.
"""

from __future__ import annotations

import uuid
from typing import Any, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.models.notification import Notification

logger = structlog.get_logger("matchcore.services.notification")


class NotificationSink(Protocol):
    async def notify(
        self,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        priority: str,
        db_session: AsyncSession,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        ...


class NotificationService:

    async def notify(
        self,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str,
        priority: str,
        db_session: AsyncSession,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        db_session.add(
            Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                priority=priority,
                payload=metadata,
            )
        )
        await db_session.flush()
        logger.info("notification_queued", user_id=str(user_id), type=type, priority=priority)
