"""In-memory booking store.

Used by tests and local tooling. Transactions are serialized with a lock and
roll back by restoring a copy of the tables, which gives the same
all-or-nothing behaviour as the database store.
"""

import asyncio
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from staydesk.core.exceptions import ConcurrentModificationError, NotFoundError
from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import Booking, CreditNote, RefundRequest, StatusChange
from staydesk.domain.payment_state import PaymentStatus
from staydesk.repositories.base import check_booking_changes


class InMemoryBookingStore:
    """Booking store keeping snapshots in dictionaries."""

    def __init__(self) -> None:
        self._bookings: dict[UUID, Booking] = {}
        self._refunds: dict[UUID, RefundRequest] = {}
        self._credit_notes: dict[UUID, CreditNote] = {}
        self._history: list[StatusChange] = []
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None

    def _tables(self) -> tuple:
        return (
            dict(self._bookings),
            dict(self._refunds),
            dict(self._credit_notes),
            list(self._history),
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[None, None]:
        if self._owner is not None and self._owner is asyncio.current_task():
            # Nested: the outer transaction owns rollback
            yield
            return

        async with self._lock:
            self._owner = asyncio.current_task()
            saved = self._tables()
            try:
                yield
            except BaseException:
                self._bookings, self._refunds, self._credit_notes, self._history = saved
                raise
            finally:
                self._owner = None

    # ==================== BOOKINGS ====================

    async def get_booking(self, booking_id: UUID) -> Booking:
        try:
            return self._bookings[booking_id]
        except KeyError:
            raise NotFoundError("Booking", str(booking_id)) from None

    async def add_booking(self, booking: Booking) -> Booking:
        self._bookings[booking.id] = booking
        return booking

    async def update_booking_status(
        self,
        booking_id: UUID,
        status: BookingStatus,
        payment_status: PaymentStatus,
        expected_version: int,
        changes: Mapping[str, Any] | None = None,
    ) -> Booking:
        values = check_booking_changes(changes)
        current = await self.get_booking(booking_id)
        if current.version != expected_version:
            raise ConcurrentModificationError(str(booking_id), expected_version)

        updated = Booking.model_validate(
            {
                **current.model_dump(),
                **values,
                "status": status,
                "payment_status": payment_status,
                "version": current.version + 1,
                "updated_at": datetime.now(UTC),
            }
        )
        self._bookings[booking_id] = updated
        return updated

    async def list_bookings(
        self,
        status: BookingStatus,
        check_in_on_or_before: date | None = None,
        check_out_on_or_before: date | None = None,
    ) -> list[Booking]:
        bookings = [b for b in self._bookings.values() if b.status == status]
        if check_in_on_or_before is not None:
            bookings = [b for b in bookings if b.check_in <= check_in_on_or_before]
        if check_out_on_or_before is not None:
            bookings = [b for b in bookings if b.check_out <= check_out_on_or_before]
        return sorted(bookings, key=lambda b: b.check_in)

    # ==================== REFUND REQUESTS ====================

    async def get_refund_request(self, refund_id: UUID) -> RefundRequest:
        try:
            return self._refunds[refund_id]
        except KeyError:
            raise NotFoundError("Refund request", str(refund_id)) from None

    async def list_refund_requests(self, booking_id: UUID) -> list[RefundRequest]:
        refunds = [r for r in self._refunds.values() if r.booking_id == booking_id]
        return sorted(refunds, key=lambda r: r.requested_at)

    async def add_refund_request(self, refund: RefundRequest) -> RefundRequest:
        self._refunds[refund.id] = refund
        return refund

    async def update_refund_request(
        self, refund_id: UUID, changes: Mapping[str, Any]
    ) -> RefundRequest:
        current = await self.get_refund_request(refund_id)
        updated = RefundRequest.model_validate({**current.model_dump(), **changes})
        self._refunds[refund_id] = updated
        return updated

    # ==================== CREDIT NOTES ====================

    async def get_credit_note(self, credit_note_id: UUID) -> CreditNote:
        try:
            return self._credit_notes[credit_note_id]
        except KeyError:
            raise NotFoundError("Credit note", str(credit_note_id)) from None

    async def list_credit_notes(self, booking_id: UUID) -> list[CreditNote]:
        notes = [n for n in self._credit_notes.values() if n.booking_id == booking_id]
        return sorted(notes, key=lambda n: n.issued_at)

    async def add_credit_note(self, credit_note: CreditNote) -> CreditNote:
        self._credit_notes[credit_note.id] = credit_note
        return credit_note

    # ==================== STATUS HISTORY ====================

    async def add_status_change(self, change: StatusChange) -> None:
        self._history.append(change)

    async def list_status_history(self, booking_id: UUID) -> list[StatusChange]:
        return [c for c in self._history if c.booking_id == booking_id]
