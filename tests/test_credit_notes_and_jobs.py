"""Tests for credit note issuance and the scheduled booking jobs."""

import re
from datetime import date, timedelta

import pytest

from staydesk.core.exceptions import AuthorizationError, ConcurrentModificationError, ValidationError
from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.payment_state import PaymentStatus
from staydesk.services.booking_jobs import BookingJobs
from staydesk.services.credit_note_service import CreditNoteService
from staydesk.services.notification_service import NotificationService
from staydesk.utils.booking_number import generate_booking_number, generate_credit_note_number

from tests.conftest import NOW


@pytest.fixture
def credit_notes(store, notifier, clock) -> CreditNoteService:
    return CreditNoteService(store, notifier, clock=clock)


@pytest.fixture
def jobs(store, manager, notifier) -> BookingJobs:
    return BookingJobs(store, manager, notifier)


class TestNumbers:
    def test_booking_number_format(self):
        assert re.fullmatch(r"SD-[A-Z0-9]{6}", generate_booking_number())

    def test_credit_note_number_uses_issue_date(self):
        assert re.fullmatch(r"CN-20260601-[A-Z0-9]{4}", generate_credit_note_number(NOW))


class TestCreditNoteService:
    async def test_issue_credit_note(self, credit_notes, add_booking, staff, notifier):
        booking = await add_booking(amount_paid=100000, payment_status=PaymentStatus.PAID)

        note = await credit_notes.issue_credit_note(booking.id, 40000, "Pool closed", staff)

        assert note.credit_note_number.startswith("CN-20260601-")
        assert note.amount == 40000
        assert note.issued_by == "staff:staff-1"
        assert note.issued_at == NOW
        [payload] = notifier.of_type(NotificationService.CREDIT_NOTE_ISSUED)
        assert payload["credit_note_number"] == note.credit_note_number

    async def test_credit_is_capped_by_amount_paid(self, credit_notes, add_booking, staff):
        booking = await add_booking(amount_paid=100000, payment_status=PaymentStatus.PAID)
        await credit_notes.issue_credit_note(booking.id, 70000, "First", staff)

        with pytest.raises(ValidationError):
            await credit_notes.issue_credit_note(booking.id, 40000, "Second", staff)

        assert len(await credit_notes.list_credit_notes(booking.id)) == 1

    async def test_guests_cannot_issue(self, credit_notes, add_booking, guest_of):
        booking = await add_booking(amount_paid=100000, payment_status=PaymentStatus.PAID)

        with pytest.raises(AuthorizationError):
            await credit_notes.issue_credit_note(booking.id, 1000, "Self-service", guest_of(booking))

    async def test_amount_must_be_positive(self, credit_notes, add_booking, staff):
        booking = await add_booking(amount_paid=100000, payment_status=PaymentStatus.PAID)

        with pytest.raises(ValidationError):
            await credit_notes.issue_credit_note(booking.id, 0, "Nothing", staff)


class TestAutoCheckout:
    async def test_checks_out_overdue_stays_only(self, jobs, add_booking, store):
        today = date(2026, 6, 18)
        due = await add_booking(
            status=BookingStatus.CHECKED_IN, check_in=date(2026, 6, 15), check_out=today
        )
        overdue = await add_booking(
            status=BookingStatus.CHECKED_IN, check_in=date(2026, 6, 10), check_out=date(2026, 6, 12)
        )
        staying = await add_booking(
            status=BookingStatus.CHECKED_IN, check_in=date(2026, 6, 16), check_out=date(2026, 6, 20)
        )
        confirmed = await add_booking(check_in=date(2026, 6, 10), check_out=date(2026, 6, 12))

        results = await jobs.auto_checkout(today)

        assert {r.booking.id for r in results if r.ok} == {due.id, overdue.id}
        assert (await store.get_booking(due.id)).status == BookingStatus.CHECKED_OUT
        assert (await store.get_booking(staying.id)).status == BookingStatus.CHECKED_IN
        assert (await store.get_booking(confirmed.id)).status == BookingStatus.CONFIRMED

    async def test_records_the_system_actor(self, jobs, add_booking, store):
        booking = await add_booking(
            status=BookingStatus.CHECKED_IN, check_in=date(2026, 6, 15), check_out=date(2026, 6, 18)
        )

        await jobs.auto_checkout(date(2026, 6, 18))

        [change] = await store.list_status_history(booking.id)
        assert change.actor_kind.value == "system"
        assert change.actor_id == "auto_checkout"

    async def test_a_moved_booking_is_skipped(self, jobs, add_booking, store, staff, manager):
        booking = await add_booking(
            status=BookingStatus.CHECKED_IN, check_in=date(2026, 6, 15), check_out=date(2026, 6, 18)
        )
        original_list = store.list_bookings

        async def list_then_checkout(*args, **kwargs):
            bookings = await original_list(*args, **kwargs)
            # Staff completes the stay between the scan and the write
            await manager.transition_status(booking.id, BookingStatus.COMPLETED, staff)
            return bookings

        store.list_bookings = list_then_checkout

        [result] = await jobs.auto_checkout(date(2026, 6, 18))

        assert isinstance(result.error, ConcurrentModificationError)
        assert (await store.get_booking(booking.id)).status == BookingStatus.COMPLETED


class TestNoShowDetection:
    async def test_alerts_without_changing_status(self, jobs, add_booking, store, notifier):
        today = date(2026, 6, 16)
        late = await add_booking(check_in=today - timedelta(days=1), check_out=today + timedelta(days=2))
        arriving_today = await add_booking(check_in=today, check_out=today + timedelta(days=2))

        suspects = await jobs.detect_no_shows(today)

        assert [b.id for b in suspects] == [late.id]
        assert (await store.get_booking(late.id)).status == BookingStatus.CONFIRMED
        [payload] = notifier.of_type(NotificationService.NO_SHOW_SUSPECTED)
        assert payload["booking_number"] == late.booking_number
        assert arriving_today.id not in {b.id for b in suspects}
