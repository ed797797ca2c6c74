"""Tests for cancellation policies and refund eligibility."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from staydesk.domain.cancellation_policy import (
    CancellationPolicy,
    calculate_policy_amount,
    calculate_refund_percentage,
    get_policy_description,
    resolve_policy,
)
from staydesk.domain.entities import CreditNote
from staydesk.domain.payment_state import PaymentStatus
from staydesk.domain.refund_eligibility import standalone_credit, validate_refund_eligibility

from tests.conftest import NOW, build_booking

CHECK_IN = date(2026, 6, 15)


class TestCancellationPolicy:
    @pytest.mark.parametrize(
        ("policy", "as_of", "expected"),
        [
            (CancellationPolicy.FLEXIBLE, date(2026, 6, 14), Decimal("100")),
            (CancellationPolicy.FLEXIBLE, date(2026, 6, 15), Decimal("50")),
            (CancellationPolicy.MODERATE, date(2026, 6, 10), Decimal("100")),
            (CancellationPolicy.MODERATE, date(2026, 6, 12), Decimal("50")),
            (CancellationPolicy.MODERATE, date(2026, 6, 15), Decimal("0")),
            (CancellationPolicy.STRICT, date(2026, 6, 8), Decimal("50")),
            (CancellationPolicy.STRICT, date(2026, 6, 9), Decimal("0")),
            (CancellationPolicy.NON_REFUNDABLE, date(2026, 1, 1), Decimal("0")),
        ],
    )
    def test_refund_percentage_windows(self, policy, as_of, expected):
        assert calculate_refund_percentage(policy, CHECK_IN, as_of) == expected

    def test_after_check_in_nothing_is_refundable(self):
        assert calculate_refund_percentage("flexible", CHECK_IN, date(2026, 6, 16)) == Decimal("0")

    def test_policy_amount_rounds_half_up(self):
        assert calculate_policy_amount("moderate", CHECK_IN, date(2026, 6, 12), 1001) == 501

    def test_unknown_policy_falls_back_to_moderate(self):
        assert resolve_policy("lenient") == CancellationPolicy.MODERATE
        assert "5 days" in get_policy_description(None)


class TestRefundEligibility:
    def test_paid_booking_inside_full_window(self):
        booking = build_booking(payment_status=PaymentStatus.PAID, amount_paid=100000)

        result = validate_refund_eligibility(booking, date(2026, 6, 1))

        assert result.eligible
        assert result.max_refundable == 100000
        assert result.available_amount == 100000
        assert result.days_before_check_in == 14
        assert result.reasons == ()

    def test_unpaid_booking_is_not_eligible(self):
        booking = build_booking()

        result = validate_refund_eligibility(booking, date(2026, 6, 1))

        assert not result.eligible
        assert result.max_refundable == 0
        assert any("unpaid" in reason for reason in result.reasons)

    def test_window_closed_after_check_in(self):
        booking = build_booking(payment_status=PaymentStatus.PAID, amount_paid=100000)

        result = validate_refund_eligibility(booking, date(2026, 6, 16))

        assert not result.eligible
        assert "Cancellation window closed at check-in" in result.reasons

    def test_previous_refunds_reduce_the_policy_amount(self):
        booking = build_booking(
            payment_status=PaymentStatus.PARTIALLY_REFUNDED,
            amount_paid=100000,
            total_refunded=30000,
        )

        result = validate_refund_eligibility(booking, date(2026, 6, 12))

        # 50% of 100000 under moderate, minus 30000 already returned
        assert result.policy_amount == 50000
        assert result.available_amount == 70000
        assert result.max_refundable == 20000

    def test_standalone_credit_notes_count_against_the_refund(self):
        booking = build_booking(payment_status=PaymentStatus.PAID, amount_paid=100000)
        notes = [
            CreditNote(
                id=uuid4(),
                credit_note_number="CN-20260601-AAAA",
                booking_id=booking.id,
                amount=40000,
                reason="Goodwill",
                issued_by="staff:1",
                issued_at=NOW,
            ),
            CreditNote(
                id=uuid4(),
                credit_note_number="CN-20260601-BBBB",
                booking_id=booking.id,
                refund_request_id=uuid4(),
                amount=10000,
                reason="Linked to a refund",
                issued_by="staff:1",
                issued_at=NOW,
            ),
        ]

        assert standalone_credit(booking, notes) == 40000
        result = validate_refund_eligibility(booking, date(2026, 6, 1), notes)
        assert result.available_amount == 60000
        assert result.max_refundable == 60000

    def test_same_inputs_give_same_answer(self):
        booking = build_booking(payment_status=PaymentStatus.PAID, amount_paid=100000)

        first = validate_refund_eligibility(booking, date(2026, 6, 12))
        second = validate_refund_eligibility(booking, date(2026, 6, 12))

        assert first == second
