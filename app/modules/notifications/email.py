"""Outgoing email delivery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email provider refuses or cannot accept a message."""


@dataclass(slots=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


class HttpEmailSender:
    """Send messages through a transactional email HTTP API (Resend-compatible)."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        from_address: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.from_address = from_address
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "from": self.from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            try:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise EmailDeliveryError(
                    f"Email provider returned {exc.response.status_code}: {exc.response.text[:200]}",
                ) from exc
            except httpx.HTTPError as exc:
                raise EmailDeliveryError(f"Email provider unreachable: {exc}") from exc


class LoggingEmailSender:
    """Development sender: logs the message instead of delivering it."""

    async def send(self, message: EmailMessage) -> None:
        logger.info("Email to %s: %s", message.to, message.subject)


def build_email_sender(settings: Settings) -> EmailSender:
    """Pick the HTTP sender when an API key is configured."""
    if not settings.email_api_key:
        logger.warning("EMAIL_API_KEY is not set; outgoing emails are only logged")
        return LoggingEmailSender()
    return HttpEmailSender(
        api_url=settings.email_api_url,
        api_key=settings.email_api_key,
        from_address=settings.email_from_address,
        timeout_seconds=settings.email_timeout_seconds,
    )
