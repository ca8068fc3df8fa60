"""Notifications repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import NotificationStatusEnum
from app.modules.notifications.models import Notification


class NotificationsRepository:
    """DB operations for notifications domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_notification(
        self,
        recipient_email: str,
        channel: str,
        subject: str,
        body: str,
        outbox_event_id: UUID | None = None,
    ) -> Notification:
        notification = Notification(
            recipient_email=recipient_email,
            channel=channel,
            subject=subject,
            body=body,
            outbox_event_id=outbox_event_id,
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def set_status(
        self,
        notification: Notification,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
        error_message: str | None = None,
    ) -> Notification:
        notification.status = status
        notification.sent_at = sent_at
        notification.error_message = error_message
        await self.session.flush()
        return notification

    async def count_by_status(self) -> dict[NotificationStatusEnum, int]:
        stmt = select(Notification.status, func.count()).group_by(Notification.status)
        rows = (await self.session.execute(stmt)).all()
        return {status: int(count) for status, count in rows}
