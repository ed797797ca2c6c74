"""Refund request workflow."""

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

from staydesk.core.exceptions import AuthorizationError, ValidationError
from staydesk.domain.entities import Actor, ActorKind, LifecycleEvent, RefundRequest
from staydesk.domain.refund_eligibility import RefundEligibility, validate_refund_eligibility
from staydesk.domain.refund_state import (
    ACTIVE_REFUND_STATUSES,
    RefundStatus,
    assert_refund_transition,
)
from staydesk.repositories.base import BookingStore
from staydesk.services.lifecycle_service import BookingLifecycleManager, TransitionResult
from staydesk.services.notification_service import NotificationService, Notifier

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RefundService:
    """Service for the refund request lifecycle."""

    def __init__(
        self,
        store: BookingStore,
        lifecycle: BookingLifecycleManager,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.clock = clock

    async def check_eligibility(self, booking_id: UUID, as_of: date | None = None) -> RefundEligibility:
        """Evaluate refund eligibility for a booking as of a date (default today)."""
        booking = await self.store.get_booking(booking_id)
        credit_notes = await self.store.list_credit_notes(booking_id)
        return validate_refund_eligibility(booking, as_of or self.clock().date(), credit_notes)

    async def create_refund_request(
        self,
        booking_id: UUID,
        amount: int,
        reason: str,
        actor: Actor,
    ) -> RefundRequest:
        """Open a refund request.

        Guests may ask for at most the policy-limited ``max_refundable``;
        staff may go up to everything still held (``available_amount``).

        Raises:
            ValidationError: Booking not eligible, an active request already
                exists, or the amount is out of range.
        """
        if amount <= 0:
            raise ValidationError("Refund amount must be greater than zero")

        async with self.store.transaction():
            booking = await self.store.get_booking(booking_id)
            existing = await self.store.list_refund_requests(booking_id)
            if any(r.status in ACTIVE_REFUND_STATUSES for r in existing):
                raise ValidationError(
                    f"Booking {booking.booking_number} already has an open refund request"
                )

            credit_notes = await self.store.list_credit_notes(booking_id)
            eligibility = validate_refund_eligibility(booking, self.clock().date(), credit_notes)
            limit = eligibility.available_amount if actor.is_privileged else eligibility.max_refundable
            if limit <= 0:
                raise ValidationError(
                    f"Booking {booking.booking_number} is not eligible for a refund: "
                    + "; ".join(eligibility.reasons)
                )
            if amount > limit:
                raise ValidationError(
                    f"Refund amount {amount} exceeds the refundable amount {limit}"
                )

            refund = await self.store.add_refund_request(
                RefundRequest(
                    id=uuid4(),
                    booking_id=booking.id,
                    requested_amount=amount,
                    currency=booking.currency,
                    reason=reason,
                    requested_by=str(actor),
                    requested_at=self.clock(),
                )
            )

        logger.info(f"Refund {refund.id} requested for {booking.booking_number}: {amount} by {actor}")
        await self._notify(NotificationService.REFUND_REQUESTED, refund, booking.booking_number, actor)
        return refund

    async def approve(
        self,
        refund_id: UUID,
        actor: Actor,
        approved_amount: int | None = None,
        notes: str | None = None,
    ) -> RefundRequest:
        """Approve a requested refund, optionally for a different amount."""
        self._require_privileged(actor, "approve")

        async with self.store.transaction():
            refund = await self.store.get_refund_request(refund_id)
            assert_refund_transition(refund.status, RefundStatus.APPROVED)

            amount = refund.requested_amount if approved_amount is None else approved_amount
            booking = await self.store.get_booking(refund.booking_id)
            credit_notes = await self.store.list_credit_notes(booking.id)
            eligibility = validate_refund_eligibility(booking, self.clock().date(), credit_notes)
            if not 0 < amount <= eligibility.available_amount:
                raise ValidationError(
                    f"Approved amount must be between 1 and {eligibility.available_amount}"
                )

            refund = await self._review(refund, RefundStatus.APPROVED, actor, notes, approved_amount=amount)

        await self._notify(NotificationService.REFUND_APPROVED, refund, booking.booking_number, actor)
        return refund

    async def reject(self, refund_id: UUID, actor: Actor, notes: str) -> RefundRequest:
        """Reject a requested refund."""
        self._require_privileged(actor, "reject")

        async with self.store.transaction():
            refund = await self.store.get_refund_request(refund_id)
            assert_refund_transition(refund.status, RefundStatus.REJECTED)
            booking = await self.store.get_booking(refund.booking_id)
            refund = await self._review(refund, RefundStatus.REJECTED, actor, notes)

        await self._notify(NotificationService.REFUND_REJECTED, refund, booking.booking_number, actor)
        return refund

    async def withdraw(self, refund_id: UUID, actor: Actor) -> RefundRequest:
        """Withdraw a refund request. Guests can only withdraw their own."""
        async with self.store.transaction():
            refund = await self.store.get_refund_request(refund_id)
            if actor.kind == ActorKind.GUEST and refund.requested_by != str(actor):
                raise AuthorizationError("You can only withdraw your own refund requests")
            assert_refund_transition(refund.status, RefundStatus.WITHDRAWN)
            booking = await self.store.get_booking(refund.booking_id)
            refund = await self.store.update_refund_request(
                refund.id, {"status": RefundStatus.WITHDRAWN}
            )

        logger.info(f"Refund {refund.id} withdrawn by {actor}")
        await self._notify(NotificationService.REFUND_WITHDRAWN, refund, booking.booking_number, actor)
        return refund

    async def process(self, refund_id: UUID, actor: Actor) -> TransitionResult:
        """Pay out an approved refund on a booking that is not being cancelled."""
        self._require_privileged(actor, "process")
        return await self.lifecycle.apply_refund(refund_id, actor)

    # ==================== HELPERS ====================

    @staticmethod
    def _require_privileged(actor: Actor, action: str) -> None:
        if not actor.is_privileged:
            raise AuthorizationError(f"Only staff can {action} refund requests")

    async def _review(
        self,
        refund: RefundRequest,
        status: RefundStatus,
        actor: Actor,
        notes: str | None,
        **extra: Any,
    ) -> RefundRequest:
        updated = await self.store.update_refund_request(
            refund.id,
            {
                "status": status,
                "reviewed_by": str(actor),
                "reviewed_at": self.clock(),
                "review_notes": notes,
                **extra,
            },
        )
        logger.info(f"Refund {refund.id} {status.value} by {actor}")
        return updated

    async def _notify(
        self, event_type: str, refund: RefundRequest, booking_number: str, actor: Actor
    ) -> None:
        if self.notifier is None:
            return
        event = LifecycleEvent(
            event_type=event_type,
            booking_id=refund.booking_id,
            booking_number=booking_number,
            old_status="",
            new_status=refund.status.value,
            actor=actor,
            reason=refund.reason,
            occurred_at=self.clock(),
        )
        payload = event.model_dump(mode="json")
        payload["refund_request_id"] = str(refund.id)
        payload["amount"] = refund.amount
        try:
            await self.notifier.emit(event_type, payload)
        except Exception:
            logger.exception(f"Failed to emit {event_type} for refund {refund.id}")
