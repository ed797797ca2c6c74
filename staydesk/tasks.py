"""Celery background tasks.

This module contains the background tasks for:
- Lifecycle event delivery to the webhook
- Automatic checkout of departed guests
- No-show detection
"""

import asyncio
import logging

import httpx
from celery import shared_task

from staydesk.database import engine, get_db_context
from staydesk.repositories.sqlalchemy_store import SqlAlchemyBookingStore
from staydesk.services.booking_jobs import BookingJobs
from staydesk.services.lifecycle_service import BookingLifecycleManager
from staydesk.services.notification_service import notification_service
from staydesk.worker import celery_app  # noqa: F401  (binds shared tasks to the configured app)

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


async def _with_cleanup(coro):
    # Pooled connections are bound to the loop that opened them
    try:
        return await coro
    finally:
        await notification_service.close()
        await engine.dispose()


# ==================== EVENT DELIVERY ====================


@shared_task(bind=True, max_retries=5)
def deliver_lifecycle_event(self, event_type: str, payload: dict):
    """POST a lifecycle event to the configured webhook.

    Retries with exponential backoff on network errors and non-2xx
    responses. Consumers deduplicate on ``payload["dedup_key"]``.
    """
    try:
        delivered = run_async(_with_cleanup(notification_service.deliver(event_type, payload)))
        return {"status": "delivered" if delivered else "skipped", "event": event_type}
    except httpx.HTTPError as exc:
        logger.warning(f"Delivery of {event_type} failed (attempt {self.request.retries + 1}): {exc}")
        raise self.retry(exc=exc, countdown=30 * 2**self.request.retries)


# ==================== BOOKING JOBS ====================


@shared_task(bind=True, max_retries=3)
def run_auto_checkout(self):
    """Move checked-in bookings past their check-out date to checked_out.

    Runs daily at the property's checkout hour.
    """
    try:
        results = run_async(_with_cleanup(_run_auto_checkout()))
        return {
            "status": "success",
            "checked_out": sum(1 for r in results if r.ok),
            "skipped": sum(1 for r in results if not r.ok),
        }
    except Exception as exc:
        raise self.retry(exc=exc, countdown=300)


async def _run_auto_checkout():
    async with get_db_context() as db:
        store = SqlAlchemyBookingStore(db)
        jobs = BookingJobs(store, BookingLifecycleManager(store, notification_service))
        return await jobs.auto_checkout()


@shared_task(bind=True, max_retries=3)
def run_no_show_detection(self):
    """Alert on confirmed bookings whose guest has not arrived."""
    try:
        suspects = run_async(_with_cleanup(_run_no_show_detection()))
        return {"status": "success", "suspected": [b.booking_number for b in suspects]}
    except Exception as exc:
        raise self.retry(exc=exc, countdown=300)


async def _run_no_show_detection():
    async with get_db_context() as db:
        store = SqlAlchemyBookingStore(db)
        jobs = BookingJobs(
            store,
            BookingLifecycleManager(store, notification_service),
            notification_service,
        )
        return await jobs.detect_no_shows()
