"""Tests for the SQLAlchemy booking store against SQLite (aiosqlite)."""

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from staydesk.core.exceptions import ConcurrentModificationError, NotFoundError
from staydesk.core.immutability import ImmutabilityViolationError, register_immutability_enforcement
from staydesk.database import Base
from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import Actor, CreditNote, RefundRequest
from staydesk.domain.payment_state import PaymentStatus
from staydesk.domain.refund_state import RefundStatus
from staydesk.models.refund import CreditNote as CreditNoteRow
from staydesk.repositories.sqlalchemy_store import SqlAlchemyBookingStore
from staydesk.services.lifecycle_service import BookingLifecycleManager

from tests.conftest import NOW, build_booking


@pytest.fixture
async def session_factory(tmp_path):
    from staydesk import models  # noqa: F401

    register_immutability_enforcement()
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'staydesk.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def seeded(session_factory):
    """A confirmed, paid booking committed to the database."""
    booking = build_booking(amount_paid=100000, payment_status=PaymentStatus.PAID)
    async with session_factory() as session:
        store = SqlAlchemyBookingStore(session)
        async with store.transaction():
            await store.add_booking(booking)
    return booking


class TestSqlAlchemyBookingStore:
    async def test_round_trips_a_booking(self, session_factory, seeded):
        async with session_factory() as session:
            booking = await SqlAlchemyBookingStore(session).get_booking(seeded.id)

        assert booking.booking_number == seeded.booking_number
        assert booking.room_ids == seeded.room_ids
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.version == 1

    async def test_missing_booking(self, session_factory):
        async with session_factory() as session:
            with pytest.raises(NotFoundError):
                await SqlAlchemyBookingStore(session).get_booking(uuid4())

    async def test_compare_and_swap_update(self, session_factory, seeded):
        async with session_factory() as session:
            store = SqlAlchemyBookingStore(session)
            async with store.transaction():
                updated = await store.update_booking_status(
                    seeded.id,
                    BookingStatus.CHECKED_IN,
                    PaymentStatus.PAID,
                    expected_version=1,
                    changes={"checked_in_at": NOW},
                )

        assert updated.status == BookingStatus.CHECKED_IN
        assert updated.version == 2
        assert updated.checked_in_at is not None

    async def test_stale_version_is_rejected(self, session_factory, seeded):
        async with session_factory() as first, session_factory() as second:
            stale = SqlAlchemyBookingStore(first)
            fresh = SqlAlchemyBookingStore(second)

            async with fresh.transaction():
                await fresh.update_booking_status(
                    seeded.id, BookingStatus.CHECKED_IN, PaymentStatus.PAID, expected_version=1
                )

            with pytest.raises(ConcurrentModificationError):
                async with stale.transaction():
                    await stale.update_booking_status(
                        seeded.id, BookingStatus.CANCELLED, PaymentStatus.PAID, expected_version=1
                    )

        async with session_factory() as session:
            booking = await SqlAlchemyBookingStore(session).get_booking(seeded.id)
        assert booking.status == BookingStatus.CHECKED_IN
        assert booking.version == 2

    async def test_unknown_columns_are_refused(self, session_factory, seeded):
        async with session_factory() as session:
            store = SqlAlchemyBookingStore(session)
            with pytest.raises(ValueError):
                async with store.transaction():
                    await store.update_booking_status(
                        seeded.id,
                        BookingStatus.CHECKED_IN,
                        PaymentStatus.PAID,
                        expected_version=1,
                        changes={"total_amount": 1},
                    )

    async def test_lifecycle_cancel_with_refund_commits_everything(self, session_factory, seeded):
        staff = Actor(kind="staff", id="staff-1")
        refund = RefundRequest(
            id=uuid4(),
            booking_id=seeded.id,
            requested_amount=100000,
            approved_amount=100000,
            status=RefundStatus.APPROVED,
            reason="Guest cancelled",
            requested_by="guest:1",
            requested_at=NOW,
        )
        async with session_factory() as session:
            store = SqlAlchemyBookingStore(session)
            async with store.transaction():
                await store.add_refund_request(refund)

            manager = BookingLifecycleManager(store, timeout=5.0, clock=lambda: NOW)
            # A read before the transition leaves an implicit transaction open
            await store.get_booking(seeded.id)
            result = await manager.transition_status(
                seeded.id, BookingStatus.CANCELLED, staff, refund_request_id=refund.id
            )
        assert result.ok

        async with session_factory() as session:
            store = SqlAlchemyBookingStore(session)
            booking = await store.get_booking(seeded.id)
            stored_refund = await store.get_refund_request(refund.id)
            history = await store.list_status_history(seeded.id)

        assert booking.status == BookingStatus.CANCELLED
        assert booking.payment_status == PaymentStatus.REFUNDED
        assert booking.total_refunded == 100000
        assert stored_refund.status == RefundStatus.PROCESSED
        assert [(c.from_status, c.to_status) for c in history] == [
            (BookingStatus.CONFIRMED, BookingStatus.CANCELLED)
        ]

    async def test_list_bookings_filters_by_status_and_dates(self, session_factory, seeded):
        async with session_factory() as session:
            store = SqlAlchemyBookingStore(session)
            confirmed = await store.list_bookings(
                BookingStatus.CONFIRMED, check_in_on_or_before=seeded.check_in
            )
            too_early = await store.list_bookings(
                BookingStatus.CONFIRMED, check_in_on_or_before=seeded.check_in.replace(day=1)
            )
            checked_in = await store.list_bookings(BookingStatus.CHECKED_IN)

        assert [b.id for b in confirmed] == [seeded.id]
        assert too_early == []
        assert checked_in == []


class TestCreditNoteImmutability:
    async def _issue(self, session_factory, booking_id):
        note = CreditNote(
            id=uuid4(),
            credit_note_number="CN-20260601-TEST",
            booking_id=booking_id,
            amount=1000,
            reason="Goodwill",
            issued_by="staff:staff-1",
            issued_at=NOW,
        )
        async with session_factory() as session:
            store = SqlAlchemyBookingStore(session)
            async with store.transaction():
                await store.add_credit_note(note)
        return note

    async def test_credit_notes_cannot_be_updated(self, session_factory, seeded):
        note = await self._issue(session_factory, seeded.id)

        async with session_factory() as session:
            row = await session.get(CreditNoteRow, note.id)
            row.amount = 5
            with pytest.raises(ImmutabilityViolationError):
                await session.flush()

    async def test_credit_notes_cannot_be_deleted(self, session_factory, seeded):
        note = await self._issue(session_factory, seeded.id)

        async with session_factory() as session:
            row = await session.get(CreditNoteRow, note.id)
            await session.delete(row)
            with pytest.raises(ImmutabilityViolationError):
                await session.flush()
