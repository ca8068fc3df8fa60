"""Notifications business logic layer."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import NotificationStatusEnum, OutboxStatusEnum, RoleEnum
from app.modules.identity.models import User
from app.modules.notifications.repository import NotificationsRepository
from app.modules.notifications.schemas import NotificationDeliveryMetricsRead
from app.modules.outbox.repository import OutboxRepository
from app.shared.exceptions import UnauthorizedException


class NotificationsService:
    """Notifications domain service."""

    def __init__(
        self,
        repository: NotificationsRepository,
        outbox_repository: OutboxRepository,
    ) -> None:
        self.repository = repository
        self.outbox_repository = outbox_repository

    async def get_delivery_metrics(self, actor: User, max_retries: int) -> NotificationDeliveryMetricsRead:
        """Return delivery pipeline snapshot (admin only)."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can view delivery metrics")

        notification_counts = await self.repository.count_by_status()
        outbox_counts = await self.outbox_repository.count_outbox_by_status()
        retryable_failed = await self.outbox_repository.count_retryable_failed_outbox(max_retries=max_retries)
        dead_letter = await self.outbox_repository.count_dead_letter_outbox(max_retries=max_retries)

        notifications_pending = notification_counts.get(NotificationStatusEnum.PENDING, 0)
        notifications_sent = notification_counts.get(NotificationStatusEnum.SENT, 0)
        notifications_failed = notification_counts.get(NotificationStatusEnum.FAILED, 0)

        outbox_pending = outbox_counts.get(OutboxStatusEnum.PENDING, 0)
        outbox_processed = outbox_counts.get(OutboxStatusEnum.PROCESSED, 0)
        outbox_failed = outbox_counts.get(OutboxStatusEnum.FAILED, 0)

        return NotificationDeliveryMetricsRead(
            notifications_total=notifications_pending + notifications_sent + notifications_failed,
            notifications_pending=notifications_pending,
            notifications_sent=notifications_sent,
            notifications_failed=notifications_failed,
            outbox_total=outbox_pending + outbox_processed + outbox_failed,
            outbox_pending=outbox_pending,
            outbox_processed=outbox_processed,
            outbox_failed=outbox_failed,
            outbox_retryable_failed=retryable_failed,
            outbox_dead_letter=dead_letter,
            max_retries=max_retries,
        )


async def get_notifications_service(session: AsyncSession = Depends(get_db_session)) -> NotificationsService:
    """Dependency provider for notifications service."""
    return NotificationsService(
        repository=NotificationsRepository(session),
        outbox_repository=OutboxRepository(session),
    )
