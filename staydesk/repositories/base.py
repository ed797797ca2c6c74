"""Persistence collaborator interface for the booking lifecycle."""

from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from datetime import date
from typing import Any, Protocol
from uuid import UUID

from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import Booking, CreditNote, RefundRequest, StatusChange
from staydesk.domain.payment_state import PaymentStatus

# Columns the lifecycle manager may set alongside a status write
BOOKING_MUTABLE_FIELDS = frozenset(
    {
        "amount_paid",
        "total_refunded",
        "cancelled_by",
        "cancellation_reason",
        "checked_in_at",
        "checked_out_at",
        "completed_at",
        "cancelled_at",
    }
)


class BookingStore(Protocol):
    """Row-level access to bookings, refunds and credit notes.

    All reads and writes made inside ``transaction()`` commit or roll back
    together. Missing rows raise ``NotFoundError``.
    """

    def transaction(self) -> AbstractAsyncContextManager[None]: ...

    async def get_booking(self, booking_id: UUID) -> Booking: ...

    async def add_booking(self, booking: Booking) -> Booking: ...

    async def update_booking_status(
        self,
        booking_id: UUID,
        status: BookingStatus,
        payment_status: PaymentStatus,
        expected_version: int,
        changes: Mapping[str, Any] | None = None,
    ) -> Booking:
        """Compare-and-swap write of the booking's statuses.

        Raises ``ConcurrentModificationError`` when the stored version is not
        ``expected_version``. On success the version is incremented.
        """
        ...

    async def list_bookings(
        self,
        status: BookingStatus,
        check_in_on_or_before: date | None = None,
        check_out_on_or_before: date | None = None,
    ) -> list[Booking]: ...

    async def get_refund_request(self, refund_id: UUID) -> RefundRequest: ...

    async def list_refund_requests(self, booking_id: UUID) -> list[RefundRequest]: ...

    async def add_refund_request(self, refund: RefundRequest) -> RefundRequest: ...

    async def update_refund_request(
        self, refund_id: UUID, changes: Mapping[str, Any]
    ) -> RefundRequest: ...

    async def get_credit_note(self, credit_note_id: UUID) -> CreditNote: ...

    async def list_credit_notes(self, booking_id: UUID) -> list[CreditNote]: ...

    async def add_credit_note(self, credit_note: CreditNote) -> CreditNote: ...

    async def add_status_change(self, change: StatusChange) -> None: ...

    async def list_status_history(self, booking_id: UUID) -> list[StatusChange]: ...


def check_booking_changes(changes: Mapping[str, Any] | None) -> dict[str, Any]:
    """Reject writes to columns outside the lifecycle's remit."""
    changes = dict(changes or {})
    unknown = set(changes) - BOOKING_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update booking fields: {', '.join(sorted(unknown))}")
    return changes
