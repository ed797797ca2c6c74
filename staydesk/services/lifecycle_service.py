"""Booking lifecycle manager.

Owns booking and payment status transitions. Each transition re-reads the
booking inside a store transaction, validates the edge, writes it with an
optimistic version check and records a history row. Rejections come back as
typed errors inside ``TransitionResult``; only missing records, storage
faults and timeouts are raised. Lifecycle events are emitted after commit
and their failure is logged, never propagated.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from staydesk.config import settings
from staydesk.core.exceptions import (
    ConcurrentModificationError,
    InvalidTransition,
    RefundRequiredError,
    TransitionError,
    TransitionTimeoutError,
    ValidationError,
)
from staydesk.domain.booking_state import BookingStatus, check_booking_transition
from staydesk.domain.entities import (
    Actor,
    Booking,
    CreditNote,
    LifecycleEvent,
    RefundRequest,
    StatusChange,
)
from staydesk.domain.payment_state import (
    PAID_STATUSES,
    REFUND_STATUSES,
    PaymentStatus,
    check_payment_transition,
    refunded_payment_status,
)
from staydesk.domain.refund_eligibility import standalone_credit
from staydesk.domain.refund_state import SETTLED_REFUND_STATUSES, RefundStatus
from staydesk.repositories.base import BookingStore
from staydesk.services.notification_service import NotificationService, Notifier

logger = logging.getLogger(__name__)

# Cancellation reason that waives the refund on a paid booking (staff/system only)
NO_REFUND_REASON = "no-refund"

STATUS_TIMESTAMP_FIELDS: dict[BookingStatus, str] = {
    BookingStatus.CHECKED_IN: "checked_in_at",
    BookingStatus.CHECKED_OUT: "checked_out_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def is_no_refund_override(reason: str | None) -> bool:
    return reason is not None and reason.strip().lower().replace("_", "-") == NO_REFUND_REASON


@dataclass
class TransitionResult:
    """Outcome of a transition: the booking, or the reason it was refused."""

    booking: Booking
    error: TransitionError | None = None
    event: LifecycleEvent | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed(self) -> bool:
        """False for refused transitions and idempotent no-ops."""
        return self.event is not None

    def unwrap(self) -> Booking:
        """Return the booking or raise the transition error."""
        if self.error is not None:
            raise self.error
        return self.booking


class BookingLifecycleManager:
    """Enforces valid booking and payment status transitions."""

    def __init__(
        self,
        store: BookingStore,
        notifier: Notifier | None = None,
        timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.timeout = timeout if timeout is not None else settings.transition_timeout_seconds
        self.clock = clock

    # ==================== BOOKING STATUS ====================

    async def transition_status(
        self,
        booking_id: UUID,
        requested_status: BookingStatus | str,
        actor: Actor,
        reason: str | None = None,
        refund_request_id: UUID | None = None,
        expected_version: int | None = None,
        waive_refund: bool = False,
    ) -> TransitionResult:
        """Move a booking to ``requested_status``.

        Args:
            booking_id: Booking to transition
            requested_status: Target BookingStatus
            actor: Who initiated the change
            reason: Free-text reason; ``"no-refund"`` waives the refund when a
                staff or system actor cancels a paid booking
            refund_request_id: Approved refund backing a paid cancellation
            expected_version: Version the caller last read; a mismatch is
                reported as ConcurrentModificationError
            waive_refund: Cancel a paid booking without a refund (staff or
                system only) while keeping ``reason`` as the free-text note

        Returns:
            TransitionResult with the updated booking, or the typed error.
        """
        target = self._coerce(BookingStatus, requested_status)
        result = await self._bounded(
            booking_id,
            self._transition_status(
                booking_id,
                target,
                actor,
                reason,
                refund_request_id,
                expected_version,
                waive_refund or is_no_refund_override(reason),
            ),
        )
        await self._emit(result)
        return result

    async def _transition_status(
        self,
        booking_id: UUID,
        target: BookingStatus,
        actor: Actor,
        reason: str | None,
        refund_request_id: UUID | None,
        expected_version: int | None,
        waive_refund: bool,
    ) -> TransitionResult:
        async with self.store.transaction():
            booking = await self.store.get_booking(booking_id)
            if expected_version is not None and booking.version != expected_version:
                return TransitionResult(
                    booking, ConcurrentModificationError(str(booking_id), expected_version)
                )

            error = check_booking_transition(booking.status, target)
            if error is not None:
                logger.info(f"Refused booking {booking.booking_number}: {error.detail}")
                return TransitionResult(booking, error)

            if target == booking.status:
                # Same terminal status requested again
                return TransitionResult(booking)

            now = self.clock()
            payment_status = booking.payment_status
            changes: dict[str, Any] = {}
            if target in STATUS_TIMESTAMP_FIELDS:
                changes[STATUS_TIMESTAMP_FIELDS[target]] = now

            refund: RefundRequest | None = None
            if target == BookingStatus.CANCELLED:
                changes["cancelled_by"] = str(actor)
                changes["cancellation_reason"] = reason
                if booking.payment_status in PAID_STATUSES:
                    refund, error = await self._refund_intent(
                        booking, actor, waive_refund, refund_request_id
                    )
                    if error is not None:
                        return TransitionResult(booking, error)
                    if refund is not None:
                        total_refunded = booking.total_refunded
                        if refund.status == RefundStatus.APPROVED:
                            total_refunded += refund.amount
                        changes["total_refunded"] = total_refunded
                        payment_status = refunded_payment_status(booking.refund_base, total_refunded)

            try:
                updated = await self.store.update_booking_status(
                    booking.id, target, payment_status, booking.version, changes
                )
            except ConcurrentModificationError as exc:
                return TransitionResult(booking, exc)

            if refund is not None and refund.status == RefundStatus.APPROVED:
                await self._mark_processed(refund, actor, now)

            await self.store.add_status_change(
                StatusChange(
                    booking_id=booking.id,
                    from_status=booking.status,
                    to_status=target,
                    from_payment_status=booking.payment_status,
                    to_payment_status=payment_status,
                    actor_kind=actor.kind,
                    actor_id=actor.id,
                    reason=reason,
                    refund_request_id=refund.id if refund else None,
                    changed_at=now,
                )
            )

        logger.info(
            f"Booking {booking.booking_number}: {booking.status.value} → {target.value} "
            f"(payment {booking.payment_status.value} → {payment_status.value}) by {actor}"
        )
        event = LifecycleEvent(
            event_type=NotificationService.BOOKING_STATUS_CHANGED,
            booking_id=booking.id,
            booking_number=booking.booking_number,
            old_status=booking.status.value,
            new_status=target.value,
            actor=actor,
            reason=reason,
            occurred_at=now,
        )
        return TransitionResult(updated, event=event)

    async def _refund_intent(
        self,
        booking: Booking,
        actor: Actor,
        waive_refund: bool,
        refund_request_id: UUID | None,
    ) -> tuple[RefundRequest | None, RefundRequiredError | None]:
        """Resolve the refund decision that lets a paid booking be cancelled."""
        if refund_request_id is not None:
            refund = await self.store.get_refund_request(refund_request_id)
            if refund.booking_id != booking.id:
                return None, RefundRequiredError(
                    f"Refund request {refund.id} belongs to a different booking"
                )
            if refund.status not in SETTLED_REFUND_STATUSES:
                return None, RefundRequiredError(
                    f"Refund request {refund.id} is {refund.status.value}; it must be approved first"
                )
            return refund, None

        if waive_refund:
            if actor.is_privileged:
                logger.info(f"Refund waived on booking {booking.booking_number} by {actor}")
                return None, None
            return None, RefundRequiredError(
                "Only staff can cancel a paid booking without a refund"
            )

        return None, RefundRequiredError(
            f"Booking {booking.booking_number} is {booking.payment_status.value}: "
            "supply an approved refund request or a no-refund override"
        )

    # ==================== PAYMENT STATUS ====================

    async def transition_payment_status(
        self,
        booking_id: UUID,
        requested_payment_status: PaymentStatus | str,
        actor: Actor,
        amount_paid: int | None = None,
        refund_request_id: UUID | None = None,
        credit_note_id: UUID | None = None,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Move a booking's payment status.

        Refund statuses need refund evidence: an approved or processed
        refund request, or an issued credit note, for this booking. An
        approved refund passed in is marked processed.
        """
        target = self._coerce(PaymentStatus, requested_payment_status)
        result = await self._bounded(
            booking_id,
            self._transition_payment_status(
                booking_id,
                target,
                actor,
                amount_paid,
                refund_request_id,
                credit_note_id,
                reason,
                expected_version,
            ),
        )
        await self._emit(result)
        return result

    async def apply_refund(
        self,
        refund_request_id: UUID,
        actor: Actor,
        reason: str | None = None,
    ) -> TransitionResult:
        """Apply an approved refund to a booking that stays active.

        The payment status becomes ``refunded`` once refunds cover the amount
        paid, otherwise ``partially_refunded``.
        """
        refund = await self.store.get_refund_request(refund_request_id)
        if refund.status != RefundStatus.APPROVED:
            raise ValidationError(
                f"Refund request {refund.id} is {refund.status.value}; only approved refunds can be processed"
            )
        booking = await self.store.get_booking(refund.booking_id)
        credit = standalone_credit(booking, await self.store.list_credit_notes(booking.id))
        target = refunded_payment_status(
            booking.refund_base, booking.total_refunded + refund.amount + credit
        )
        return await self.transition_payment_status(
            booking.id,
            target,
            actor,
            refund_request_id=refund.id,
            reason=reason or refund.reason,
            expected_version=booking.version,
        )

    async def _transition_payment_status(
        self,
        booking_id: UUID,
        target: PaymentStatus,
        actor: Actor,
        amount_paid: int | None,
        refund_request_id: UUID | None,
        credit_note_id: UUID | None,
        reason: str | None,
        expected_version: int | None,
    ) -> TransitionResult:
        async with self.store.transaction():
            booking = await self.store.get_booking(booking_id)
            if expected_version is not None and booking.version != expected_version:
                return TransitionResult(
                    booking, ConcurrentModificationError(str(booking_id), expected_version)
                )

            # A further partial refund keeps the status and only adds to total_refunded
            top_up = (
                target == booking.payment_status == PaymentStatus.PARTIALLY_REFUNDED
                and refund_request_id is not None
            )
            if not top_up:
                error = check_payment_transition(booking.payment_status, target)
                if error is not None:
                    logger.info(
                        f"Refused payment change on {booking.booking_number}: {error.detail}"
                    )
                    return TransitionResult(booking, error)
                if target == booking.payment_status:
                    return TransitionResult(booking)

            now = self.clock()
            changes: dict[str, Any] = {}
            refund: RefundRequest | None = None

            if target == PaymentStatus.PAID:
                paid = booking.total_amount if amount_paid is None else amount_paid
                if paid < booking.total_amount:
                    raise ValidationError(
                        f"Amount paid {paid} is below the booking total {booking.total_amount}"
                    )
                changes["amount_paid"] = paid
            elif target == PaymentStatus.PARTIALLY_PAID:
                if amount_paid is None or not 0 < amount_paid < booking.total_amount:
                    raise ValidationError(
                        "A partial payment needs an amount between 0 and the booking total"
                    )
                changes["amount_paid"] = amount_paid
            elif target in REFUND_STATUSES:
                refund, credit_notes, error = await self._refund_evidence(
                    booking, refund_request_id, credit_note_id
                )
                if error is None and top_up and refund.status != RefundStatus.APPROVED:
                    error = RefundRequiredError(
                        f"Refund request {refund.id} is {refund.status.value}; "
                        "only an approved refund can be applied"
                    )
                if error is not None:
                    return TransitionResult(booking, error)
                total_refunded = booking.total_refunded
                if refund is not None and refund.status == RefundStatus.APPROVED:
                    total_refunded += refund.amount
                    changes["total_refunded"] = total_refunded
                covered = total_refunded + standalone_credit(booking, credit_notes)
                settled = refunded_payment_status(booking.refund_base, covered)
                if target == PaymentStatus.REFUNDED and settled != target:
                    return TransitionResult(
                        booking,
                        RefundRequiredError(
                            f"Refunds and credit notes cover {covered} of {booking.refund_base}; "
                            "booking cannot be marked fully refunded"
                        ),
                    )
                if settled != target:
                    logger.info(
                        f"Refused payment change on {booking.booking_number}: "
                        f"{covered} of {booking.refund_base} covered, status must be {settled.value}"
                    )
                    return TransitionResult(
                        booking,
                        InvalidTransition(
                            booking.payment_status.value, target.value, {settled.value}
                        ),
                    )

            try:
                updated = await self.store.update_booking_status(
                    booking.id, booking.status, target, booking.version, changes
                )
            except ConcurrentModificationError as exc:
                return TransitionResult(booking, exc)

            if refund is not None and refund.status == RefundStatus.APPROVED:
                await self._mark_processed(refund, actor, now)

            await self.store.add_status_change(
                StatusChange(
                    booking_id=booking.id,
                    from_status=booking.status,
                    to_status=booking.status,
                    from_payment_status=booking.payment_status,
                    to_payment_status=target,
                    actor_kind=actor.kind,
                    actor_id=actor.id,
                    reason=reason,
                    refund_request_id=refund.id if refund else None,
                    credit_note_id=credit_note_id,
                    changed_at=now,
                )
            )

        logger.info(
            f"Booking {booking.booking_number}: payment {booking.payment_status.value} → "
            f"{target.value} by {actor}"
        )
        event = LifecycleEvent(
            event_type=NotificationService.PAYMENT_STATUS_CHANGED,
            booking_id=booking.id,
            booking_number=booking.booking_number,
            old_status=booking.payment_status.value,
            new_status=target.value,
            actor=actor,
            reason=reason,
            occurred_at=now,
        )
        return TransitionResult(updated, event=event)

    async def _refund_evidence(
        self,
        booking: Booking,
        refund_request_id: UUID | None,
        credit_note_id: UUID | None,
    ) -> tuple[RefundRequest | None, list[CreditNote], RefundRequiredError | None]:
        """Find the refund request or credit note that justifies a refund status."""
        credit_notes = await self.store.list_credit_notes(booking.id)
        refund: RefundRequest | None = None

        if refund_request_id is not None:
            refund, error = await self._refund_intent(booking, Actor.system(), False, refund_request_id)
            if error is not None:
                return None, credit_notes, error

        if credit_note_id is not None:
            note = await self.store.get_credit_note(credit_note_id)
            if note.booking_id != booking.id:
                return None, credit_notes, RefundRequiredError(
                    f"Credit note {note.credit_note_number} belongs to a different booking"
                )

        if refund is None and credit_note_id is None and not credit_notes:
            refunds = await self.store.list_refund_requests(booking.id)
            if not any(r.status in SETTLED_REFUND_STATUSES for r in refunds):
                return None, credit_notes, RefundRequiredError(
                    "Refund statuses require an approved refund request or an issued credit note"
                )

        return refund, credit_notes, None

    # ==================== HELPERS ====================

    async def _mark_processed(self, refund: RefundRequest, actor: Actor, now: datetime) -> None:
        await self.store.update_refund_request(
            refund.id,
            {
                "status": RefundStatus.PROCESSED,
                "processed_by": str(actor),
                "processed_at": now,
            },
        )

    @staticmethod
    def _coerce(enum_type, value):
        try:
            return enum_type(value)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_type)
            raise ValidationError(f"Unknown status '{value}'. Expected one of: {allowed}") from None

    async def _bounded(self, booking_id: UUID, operation) -> TransitionResult:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout)
        except TimeoutError:
            logger.error(f"Transition on booking {booking_id} timed out after {self.timeout}s")
            raise TransitionTimeoutError(str(booking_id), self.timeout) from None

    async def _emit(self, result: TransitionResult) -> None:
        """Best-effort event emission; failures are logged only."""
        if result.event is None or self.notifier is None:
            return
        event = result.event
        try:
            await asyncio.wait_for(
                self.notifier.emit(event.event_type, event.model_dump(mode="json")),
                timeout=settings.event_publish_timeout_seconds,
            )
        except Exception:
            logger.exception(
                f"Failed to emit {event.event_type} for booking {event.booking_number}"
            )
