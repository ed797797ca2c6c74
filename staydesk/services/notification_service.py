"""Lifecycle event notifications.

Events are handed to Celery and delivered to the configured webhook by a
worker. The publish runs off the event loop with a bounded wait, so emission
never blocks or fails a booking transition. Delivery is
at-least-once and unordered; every payload carries a ``dedup_key``.
"""

import asyncio
import hashlib
import hmac
import json
import logging
from typing import Any, Protocol

import httpx

from staydesk.config import settings

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Notification collaborator: fire-and-forget event emission."""

    async def emit(self, event_type: str, payload: dict[str, Any]) -> None: ...


class NotificationService:
    """Queues lifecycle events and delivers them to the webhook endpoint."""

    # Event types
    BOOKING_STATUS_CHANGED = "booking.status_changed"
    PAYMENT_STATUS_CHANGED = "booking.payment_status_changed"
    NO_SHOW_SUSPECTED = "booking.no_show_suspected"
    REFUND_REQUESTED = "refund.requested"
    REFUND_APPROVED = "refund.approved"
    REFUND_REJECTED = "refund.rejected"
    REFUND_WITHDRAWN = "refund.withdrawn"
    CREDIT_NOTE_ISSUED = "credit_note.issued"

    def __init__(self) -> None:
        """Initialize notification service."""
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=settings.lifecycle_webhook_timeout_seconds
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        """Queue an event for background delivery.

        The broker publish is blocking, so it runs in a worker thread and is
        bounded by ``event_publish_timeout_seconds``.

        Raises:
            TimeoutError: If the broker does not accept the message in time
        """
        from staydesk.tasks import deliver_lifecycle_event

        await asyncio.wait_for(
            asyncio.to_thread(
                deliver_lifecycle_event.apply_async, (event_type, payload), retry=False
            ),
            timeout=settings.event_publish_timeout_seconds,
        )
        logger.debug(f"Queued {event_type} event {payload.get('dedup_key')}")

    # ==================== WEBHOOK DELIVERY ====================

    @staticmethod
    def sign(body: bytes, secret: str) -> str:
        """HMAC-SHA256 signature sent in ``X-StayDesk-Signature``."""
        return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()

    async def deliver(self, event_type: str, payload: dict[str, Any]) -> bool:
        """POST an event to the lifecycle webhook.

        Args:
            event_type: Event name, e.g. ``booking.status_changed``
            payload: JSON-serialisable event body

        Returns:
            bool: True if delivered, False when no webhook is configured

        Raises:
            httpx.HTTPError: On network failure or a non-2xx response, so the
                worker can retry.
        """
        if not settings.lifecycle_webhook_url:
            logger.debug(f"No lifecycle webhook configured; dropping {event_type}")
            return False

        body = json.dumps({"type": event_type, "data": payload}, sort_keys=True).encode()
        headers = {"Content-Type": "application/json", "X-StayDesk-Event": event_type}
        if settings.lifecycle_webhook_secret:
            headers["X-StayDesk-Signature"] = self.sign(body, settings.lifecycle_webhook_secret)

        response = await self.http_client.post(
            settings.lifecycle_webhook_url,
            content=body,
            headers=headers,
        )
        response.raise_for_status()
        return True


notification_service = NotificationService()
