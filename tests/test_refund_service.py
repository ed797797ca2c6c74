"""Tests for the refund request workflow."""

from datetime import date
from uuid import uuid4

import pytest

from staydesk.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import Actor, ActorKind
from staydesk.domain.payment_state import PaymentStatus
from staydesk.domain.refund_state import RefundStatus
from staydesk.services.notification_service import NotificationService
from staydesk.services.refund_service import RefundService


@pytest.fixture
def refunds(store, manager, notifier, clock) -> RefundService:
    return RefundService(store, manager, notifier, clock=clock)


@pytest.fixture
async def paid_booking(add_booking):
    # Check-in 2026-06-15; the test clock is 2026-06-01 so moderate gives 100%
    return await add_booking(amount_paid=100000, payment_status=PaymentStatus.PAID)


class TestCreateRefundRequest:
    async def test_guest_requests_within_policy(self, refunds, paid_booking, guest_of, notifier):
        guest = guest_of(paid_booking)

        refund = await refunds.create_refund_request(paid_booking.id, 100000, "Trip cancelled", guest)

        assert refund.status == RefundStatus.REQUESTED
        assert refund.requested_by == str(guest)
        [payload] = notifier.of_type(NotificationService.REFUND_REQUESTED)
        assert payload["refund_request_id"] == str(refund.id)
        assert payload["amount"] == 100000

    async def test_guest_is_capped_by_policy(self, refunds, add_booking, guest_of):
        booking = await add_booking(
            amount_paid=100000,
            payment_status=PaymentStatus.PAID,
            check_in=date(2026, 6, 3),
            check_out=date(2026, 6, 5),
        )

        eligibility = await refunds.check_eligibility(booking.id)
        assert eligibility.max_refundable == 50000

        with pytest.raises(ValidationError):
            await refunds.create_refund_request(booking.id, 60000, "Too late", guest_of(booking))

    async def test_staff_can_go_past_policy(self, refunds, add_booking, staff):
        booking = await add_booking(
            amount_paid=100000,
            payment_status=PaymentStatus.PAID,
            cancellation_policy="non_refundable",
        )

        refund = await refunds.create_refund_request(booking.id, 100000, "Goodwill", staff)

        assert refund.requested_amount == 100000

    async def test_staff_cannot_exceed_what_was_paid(self, refunds, paid_booking, staff):
        with pytest.raises(ValidationError):
            await refunds.create_refund_request(paid_booking.id, 100001, "Too much", staff)

    async def test_unpaid_booking_is_not_eligible(self, refunds, add_booking, guest_of):
        booking = await add_booking()

        with pytest.raises(ValidationError) as exc_info:
            await refunds.create_refund_request(booking.id, 1000, "Nothing paid", guest_of(booking))

        assert "not eligible" in exc_info.value.detail

    async def test_one_open_request_per_booking(self, refunds, paid_booking, guest_of):
        guest = guest_of(paid_booking)
        await refunds.create_refund_request(paid_booking.id, 1000, "First", guest)

        with pytest.raises(ValidationError):
            await refunds.create_refund_request(paid_booking.id, 1000, "Second", guest)

    async def test_amount_must_be_positive(self, refunds, paid_booking, staff):
        with pytest.raises(ValidationError):
            await refunds.create_refund_request(paid_booking.id, 0, "Zero", staff)

    async def test_missing_booking(self, refunds, staff):
        with pytest.raises(NotFoundError):
            await refunds.create_refund_request(uuid4(), 1000, "Ghost", staff)


class TestReview:
    async def test_approve_with_reduced_amount(self, refunds, paid_booking, guest_of, staff):
        refund = await refunds.create_refund_request(paid_booking.id, 80000, "Cancelled", guest_of(paid_booking))

        approved = await refunds.approve(refund.id, staff, approved_amount=60000, notes="Cleaning fee kept")

        assert approved.status == RefundStatus.APPROVED
        assert approved.amount == 60000
        assert approved.reviewed_by == "staff:staff-1"
        assert approved.review_notes == "Cleaning fee kept"

    async def test_guests_cannot_approve(self, refunds, paid_booking, guest_of):
        guest = guest_of(paid_booking)
        refund = await refunds.create_refund_request(paid_booking.id, 1000, "Cancelled", guest)

        with pytest.raises(AuthorizationError):
            await refunds.approve(refund.id, guest)

    async def test_reject_then_request_again(self, refunds, paid_booking, guest_of, staff):
        guest = guest_of(paid_booking)
        refund = await refunds.create_refund_request(paid_booking.id, 1000, "Cancelled", guest)

        rejected = await refunds.reject(refund.id, staff, "Outside policy")
        assert rejected.status == RefundStatus.REJECTED

        with pytest.raises(ValidationError):
            await refunds.approve(refund.id, staff)

        again = await refunds.create_refund_request(paid_booking.id, 500, "Partial", guest)
        assert again.status == RefundStatus.REQUESTED

    async def test_guest_withdraws_own_request(self, refunds, paid_booking, guest_of):
        guest = guest_of(paid_booking)
        refund = await refunds.create_refund_request(paid_booking.id, 1000, "Cancelled", guest)

        withdrawn = await refunds.withdraw(refund.id, guest)

        assert withdrawn.status == RefundStatus.WITHDRAWN

    async def test_guest_cannot_withdraw_someone_elses_request(self, refunds, paid_booking, guest_of):
        refund = await refunds.create_refund_request(paid_booking.id, 1000, "Cancelled", guest_of(paid_booking))
        stranger = Actor(kind=ActorKind.GUEST, id=str(uuid4()))

        with pytest.raises(AuthorizationError):
            await refunds.withdraw(refund.id, stranger)


class TestProcess:
    async def test_process_keeps_booking_active(self, refunds, paid_booking, guest_of, staff, store):
        refund = await refunds.create_refund_request(paid_booking.id, 25000, "Broken heater", guest_of(paid_booking))
        await refunds.approve(refund.id, staff)

        result = await refunds.process(refund.id, staff)

        assert result.ok
        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert result.booking.total_refunded == 25000
        assert (await store.get_refund_request(refund.id)).status == RefundStatus.PROCESSED

    async def test_cannot_process_before_approval(self, refunds, paid_booking, guest_of, staff):
        refund = await refunds.create_refund_request(paid_booking.id, 25000, "Broken heater", guest_of(paid_booking))

        with pytest.raises(ValidationError):
            await refunds.process(refund.id, staff)

    async def test_full_flow_cancel_with_approved_refund(self, refunds, manager, paid_booking, guest_of, staff):
        guest = guest_of(paid_booking)
        refund = await refunds.create_refund_request(paid_booking.id, 100000, "Cancelled", guest)
        await refunds.approve(refund.id, staff)

        result = await manager.transition_status(
            paid_booking.id, BookingStatus.CANCELLED, guest, refund_request_id=refund.id
        )

        assert result.booking.status == BookingStatus.CANCELLED
        assert result.booking.payment_status == PaymentStatus.REFUNDED
