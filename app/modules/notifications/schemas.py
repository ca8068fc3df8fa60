"""Notifications schemas."""

from __future__ import annotations

from pydantic import BaseModel


class NotificationDeliveryMetricsRead(BaseModel):
    """Snapshot of the email delivery pipeline."""

    notifications_total: int
    notifications_pending: int
    notifications_sent: int
    notifications_failed: int
    outbox_total: int
    outbox_pending: int
    outbox_processed: int
    outbox_failed: int
    outbox_retryable_failed: int
    outbox_dead_letter: int
    max_retries: int
