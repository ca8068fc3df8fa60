"""Outbox consumer that turns domain events into delivered emails."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.core.enums import NotificationStatusEnum
from app.modules.notifications.email import EmailMessage, EmailSender
from app.modules.notifications.repository import NotificationsRepository
from app.modules.notifications.templates import build_messages
from app.modules.outbox.models import OutboxEvent
from app.modules.outbox.repository import OutboxRepository
from app.shared.utils import utc_now

logger = logging.getLogger(__name__)


class NotificationsOutboxWorker:
    """Process outbox events, log notifications and send emails."""

    def __init__(
        self,
        outbox_repository: OutboxRepository,
        notifications_repository: NotificationsRepository,
        email_sender: EmailSender,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.outbox_repository = outbox_repository
        self.notifications_repository = notifications_repository
        self.email_sender = email_sender
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.outbox_repository.list_pending_outbox(limit=self.batch_size)
        for event in events:
            try:
                messages = build_messages(event.event_type, event.payload or {})
                for message in messages:
                    await self._deliver(event, message)
                    stats["dispatched"] += 1

                await self.outbox_repository.mark_outbox_processed(event, self.now_provider())
                stats["processed"] += 1
            except Exception as exc:
                logger.warning("Outbox event %s (%s) failed: %s", event.id, event.event_type, exc)
                await self.outbox_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    async def _deliver(self, event: OutboxEvent, message: EmailMessage) -> None:
        notification = await self.notifications_repository.create_notification(
            recipient_email=message.to,
            channel="email",
            subject=message.subject,
            body=message.html,
            outbox_event_id=event.id,
        )
        try:
            await self.email_sender.send(message)
        except Exception as exc:
            await self.notifications_repository.set_status(
                notification,
                NotificationStatusEnum.FAILED,
                None,
                error_message=str(exc),
            )
            raise
        await self.notifications_repository.set_status(
            notification,
            NotificationStatusEnum.SENT,
            self.now_provider(),
        )

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.outbox_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.outbox_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)
