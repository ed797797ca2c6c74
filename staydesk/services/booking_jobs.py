"""Scheduled booking housekeeping.

Runs from Celery beat (see ``staydesk.tasks``). Each booking is handled
independently: one failed transition never stops the rest of the batch.
"""

import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from staydesk.config import settings
from staydesk.core.exceptions import AppException
from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import Actor, Booking, LifecycleEvent
from staydesk.repositories.base import BookingStore
from staydesk.services.lifecycle_service import BookingLifecycleManager, TransitionResult
from staydesk.services.notification_service import NotificationService, Notifier

logger = logging.getLogger(__name__)


def property_today() -> date:
    """Current date at the property."""
    return datetime.now(ZoneInfo(settings.scheduler_timezone)).date()


class BookingJobs:
    """Daily auto-checkout and no-show detection."""

    def __init__(
        self,
        store: BookingStore,
        lifecycle: BookingLifecycleManager,
        notifier: Notifier | None = None,
    ) -> None:
        self.store = store
        self.lifecycle = lifecycle
        self.notifier = notifier

    async def auto_checkout(self, today: date | None = None) -> list[TransitionResult]:
        """Check out guests whose stay ended today or earlier."""
        today = today or property_today()
        actor = Actor.system("auto_checkout")
        bookings = await self.store.list_bookings(
            BookingStatus.CHECKED_IN, check_out_on_or_before=today
        )

        results = []
        for booking in bookings:
            try:
                result = await self.lifecycle.transition_status(
                    booking.id,
                    BookingStatus.CHECKED_OUT,
                    actor,
                    reason="Automatic checkout",
                    expected_version=booking.version,
                )
            except AppException as exc:
                logger.error(f"Auto-checkout failed for {booking.booking_number}: {exc.detail}")
                continue
            if not result.ok:
                logger.warning(
                    f"Auto-checkout skipped {booking.booking_number}: {result.error.detail}"
                )
            results.append(result)

        checked_out = sum(1 for r in results if r.ok)
        logger.info(f"Auto-checkout: {checked_out}/{len(bookings)} bookings checked out")
        return results

    async def detect_no_shows(self, today: date | None = None) -> list[Booking]:
        """Flag confirmed bookings whose guest never arrived.

        Status is left alone; staff decide whether to mark the no-show.
        """
        today = today or property_today()
        cutoff = today - timedelta(days=settings.no_show_grace_days)
        suspects = await self.store.list_bookings(
            BookingStatus.CONFIRMED, check_in_on_or_before=cutoff
        )

        for booking in suspects:
            logger.warning(
                f"Possible no-show: {booking.booking_number} (check-in {booking.check_in})"
            )
            await self._alert(booking)

        return suspects

    async def _alert(self, booking: Booking) -> None:
        if self.notifier is None:
            return
        event = LifecycleEvent(
            event_type=NotificationService.NO_SHOW_SUSPECTED,
            booking_id=booking.id,
            booking_number=booking.booking_number,
            old_status=booking.status.value,
            new_status=booking.status.value,
            actor=Actor.system("detect_no_shows"),
            reason=f"Guest has not checked in since {booking.check_in.isoformat()}",
            occurred_at=datetime.now(ZoneInfo(settings.scheduler_timezone)),
        )
        try:
            await self.notifier.emit(event.event_type, event.model_dump(mode="json"))
        except Exception:
            logger.exception(f"Failed to emit no-show alert for {booking.booking_number}")
