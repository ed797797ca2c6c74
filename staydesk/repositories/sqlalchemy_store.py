"""SQLAlchemy implementation of the booking store."""

import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.core.exceptions import ConcurrentModificationError, NotFoundError
from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import Booking, CreditNote, RefundRequest, StatusChange
from staydesk.domain.payment_state import PaymentStatus
from staydesk.models.booking import Booking as BookingRow
from staydesk.models.booking import BookingStatusHistory
from staydesk.models.refund import CreditNote as CreditNoteRow
from staydesk.models.refund import RefundRequest as RefundRequestRow
from staydesk.repositories.base import check_booking_changes

logger = logging.getLogger(__name__)


def _column_values(values: Mapping[str, Any]) -> dict[str, Any]:
    """Store enums by value."""
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}


class SqlAlchemyBookingStore:
    """Booking store backed by an async SQLAlchemy session.

    The session's lifecycle belongs to the caller (request or task scope).
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._depth = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[None, None]:
        if self._depth:
            # Nested: the outer transaction owns commit and rollback
            yield
            return

        if self.session.in_transaction():
            # Reads made before this block autobegan a transaction; close it
            # so the block below owns the commit.
            await self.session.commit()

        self._depth += 1
        try:
            async with self.session.begin():
                yield
        finally:
            self._depth -= 1

    # ==================== BOOKINGS ====================

    async def _booking_row(self, booking_id: UUID) -> BookingRow:
        result = await self.session.execute(
            select(BookingRow)
            .where(BookingRow.id == booking_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Booking", str(booking_id))
        return row

    async def get_booking(self, booking_id: UUID) -> Booking:
        return Booking.model_validate(await self._booking_row(booking_id))

    async def add_booking(self, booking: Booking) -> Booking:
        values = _column_values(booking.model_dump())
        values["room_ids"] = [str(room_id) for room_id in booking.room_ids]
        row = BookingRow(**values)
        self.session.add(row)
        await self.session.flush()
        return Booking.model_validate(row)

    async def update_booking_status(
        self,
        booking_id: UUID,
        status: BookingStatus,
        payment_status: PaymentStatus,
        expected_version: int,
        changes: Mapping[str, Any] | None = None,
    ) -> Booking:
        values = _column_values(check_booking_changes(changes))
        result = await self.session.execute(
            update(BookingRow)
            .where(BookingRow.id == booking_id, BookingRow.version == expected_version)
            .values(
                status=status.value,
                payment_status=payment_status.value,
                version=BookingRow.version + 1,
                updated_at=datetime.now(UTC),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Either the row is gone or someone else bumped the version
            exists = await self.session.scalar(select(BookingRow.id).where(BookingRow.id == booking_id))
            if exists is None:
                raise NotFoundError("Booking", str(booking_id))
            logger.warning(
                f"Version conflict on booking {booking_id} (expected v{expected_version})"
            )
            raise ConcurrentModificationError(str(booking_id), expected_version)
        return await self.get_booking(booking_id)

    async def list_bookings(
        self,
        status: BookingStatus,
        check_in_on_or_before: date | None = None,
        check_out_on_or_before: date | None = None,
    ) -> list[Booking]:
        query = select(BookingRow).where(BookingRow.status == status.value)
        if check_in_on_or_before is not None:
            query = query.where(BookingRow.check_in <= check_in_on_or_before)
        if check_out_on_or_before is not None:
            query = query.where(BookingRow.check_out <= check_out_on_or_before)
        result = await self.session.execute(query.order_by(BookingRow.check_in))
        return [Booking.model_validate(row) for row in result.scalars().all()]

    # ==================== REFUND REQUESTS ====================

    async def _refund_row(self, refund_id: UUID) -> RefundRequestRow:
        result = await self.session.execute(
            select(RefundRequestRow)
            .where(RefundRequestRow.id == refund_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Refund request", str(refund_id))
        return row

    async def get_refund_request(self, refund_id: UUID) -> RefundRequest:
        return RefundRequest.model_validate(await self._refund_row(refund_id))

    async def list_refund_requests(self, booking_id: UUID) -> list[RefundRequest]:
        result = await self.session.execute(
            select(RefundRequestRow)
            .where(RefundRequestRow.booking_id == booking_id)
            .order_by(RefundRequestRow.requested_at)
        )
        return [RefundRequest.model_validate(row) for row in result.scalars().all()]

    async def add_refund_request(self, refund: RefundRequest) -> RefundRequest:
        row = RefundRequestRow(**_column_values(refund.model_dump()))
        self.session.add(row)
        await self.session.flush()
        return RefundRequest.model_validate(row)

    async def update_refund_request(
        self, refund_id: UUID, changes: Mapping[str, Any]
    ) -> RefundRequest:
        row = await self._refund_row(refund_id)
        for key, value in _column_values(changes).items():
            setattr(row, key, value)
        await self.session.flush()
        return RefundRequest.model_validate(row)

    # ==================== CREDIT NOTES ====================

    async def get_credit_note(self, credit_note_id: UUID) -> CreditNote:
        row = await self.session.get(CreditNoteRow, credit_note_id)
        if row is None:
            raise NotFoundError("Credit note", str(credit_note_id))
        return CreditNote.model_validate(row)

    async def list_credit_notes(self, booking_id: UUID) -> list[CreditNote]:
        result = await self.session.execute(
            select(CreditNoteRow)
            .where(CreditNoteRow.booking_id == booking_id)
            .order_by(CreditNoteRow.issued_at)
        )
        return [CreditNote.model_validate(row) for row in result.scalars().all()]

    async def add_credit_note(self, credit_note: CreditNote) -> CreditNote:
        row = CreditNoteRow(**credit_note.model_dump())
        self.session.add(row)
        await self.session.flush()
        return CreditNote.model_validate(row)

    # ==================== STATUS HISTORY ====================

    async def add_status_change(self, change: StatusChange) -> None:
        self.session.add(BookingStatusHistory(**_column_values(change.model_dump())))
        await self.session.flush()

    async def list_status_history(self, booking_id: UUID) -> list[StatusChange]:
        result = await self.session.execute(
            select(BookingStatusHistory)
            .where(BookingStatusHistory.booking_id == booking_id)
            .order_by(BookingStatusHistory.changed_at)
        )
        return [StatusChange.model_validate(row) for row in result.scalars().all()]
