"""Credit note issuance."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID, uuid4

from staydesk.core.exceptions import AuthorizationError, ValidationError
from staydesk.domain.entities import Actor, CreditNote, LifecycleEvent
from staydesk.repositories.base import BookingStore
from staydesk.services.notification_service import NotificationService, Notifier
from staydesk.utils.booking_number import generate_credit_note_number

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CreditNoteService:
    """Issues credit notes. Issued notes are never changed or deleted."""

    def __init__(
        self,
        store: BookingStore,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.clock = clock

    async def issue_credit_note(
        self,
        booking_id: UUID,
        amount: int,
        reason: str,
        actor: Actor,
        refund_request_id: UUID | None = None,
    ) -> CreditNote:
        """Issue a credit note against a booking.

        Args:
            booking_id: Booking being credited
            amount: Credit in minor units; at most the paid amount not yet
                covered by earlier credit notes
            reason: Why the credit was issued
            actor: Staff or system actor issuing the note
            refund_request_id: Refund request the note documents, if any

        Returns:
            CreditNote: The issued note with its CN-YYYYMMDD-XXXX number
        """
        if not actor.is_privileged:
            raise AuthorizationError("Only staff can issue credit notes")
        if amount <= 0:
            raise ValidationError("Credit note amount must be greater than zero")

        async with self.store.transaction():
            booking = await self.store.get_booking(booking_id)
            if refund_request_id is not None:
                refund = await self.store.get_refund_request(refund_request_id)
                if refund.booking_id != booking.id:
                    raise ValidationError("Refund request belongs to a different booking")

            existing = await self.store.list_credit_notes(booking_id)
            remaining = booking.amount_paid - sum(note.amount for note in existing)
            if amount > remaining:
                raise ValidationError(
                    f"Credit note amount {amount} exceeds the creditable amount {max(remaining, 0)}"
                )

            issued_at = self.clock()
            note = await self.store.add_credit_note(
                CreditNote(
                    id=uuid4(),
                    credit_note_number=generate_credit_note_number(issued_at),
                    booking_id=booking.id,
                    refund_request_id=refund_request_id,
                    amount=amount,
                    currency=booking.currency,
                    reason=reason,
                    issued_by=str(actor),
                    issued_at=issued_at,
                )
            )

        logger.info(
            f"Credit note {note.credit_note_number} issued for {booking.booking_number}: "
            f"{amount} {note.currency} by {actor}"
        )
        await self._notify(note, booking.booking_number, actor)
        return note

    async def list_credit_notes(self, booking_id: UUID) -> list[CreditNote]:
        await self.store.get_booking(booking_id)
        return await self.store.list_credit_notes(booking_id)

    async def _notify(self, note: CreditNote, booking_number: str, actor: Actor) -> None:
        if self.notifier is None:
            return
        payload = LifecycleEvent(
            event_type=NotificationService.CREDIT_NOTE_ISSUED,
            booking_id=note.booking_id,
            booking_number=booking_number,
            old_status="",
            new_status="issued",
            actor=actor,
            reason=note.reason,
            occurred_at=note.issued_at,
        ).model_dump(mode="json")
        payload["credit_note_number"] = note.credit_note_number
        payload["amount"] = note.amount
        try:
            await self.notifier.emit(NotificationService.CREDIT_NOTE_ISSUED, payload)
        except Exception:
            logger.exception(f"Failed to emit credit note event for {note.credit_note_number}")
