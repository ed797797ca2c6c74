"""Refund eligibility for a booking snapshot.

Pure: the answer depends only on the booking, the evaluation date and the
credit notes passed in, so the same snapshot always gives the same result.
"""

from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, ConfigDict

from staydesk.domain.cancellation_policy import (
    calculate_policy_amount,
    days_before_check_in,
    resolve_policy,
)
from staydesk.domain.entities import Booking, CreditNote
from staydesk.domain.payment_state import PaymentStatus

REFUNDABLE_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID, PaymentStatus.PARTIALLY_PAID, PaymentStatus.PARTIALLY_REFUNDED}
)


class RefundEligibility(BaseModel):
    """Result of a refund eligibility check."""

    model_config = ConfigDict(frozen=True)

    eligible: bool
    max_refundable: int
    available_amount: int
    policy_amount: int
    policy: str
    days_before_check_in: int
    reasons: tuple[str, ...] = ()


def standalone_credit(booking: Booking, credit_notes: Iterable[CreditNote]) -> int:
    """Credit issued for the booking outside of a refund request.

    Credit notes linked to a refund request are already part of
    ``booking.total_refunded`` once that refund is processed.
    """
    return sum(
        note.amount
        for note in credit_notes
        if note.booking_id == booking.id and note.refund_request_id is None
    )


def validate_refund_eligibility(
    booking: Booking,
    as_of: date,
    credit_notes: Iterable[CreditNote] = (),
) -> RefundEligibility:
    """Work out whether, and how much, the booking can be refunded on ``as_of``."""
    reasons: list[str] = []
    policy = resolve_policy(booking.cancellation_policy)
    days_before = days_before_check_in(booking.check_in, as_of)

    if booking.payment_status not in REFUNDABLE_PAYMENT_STATUSES:
        reasons.append(
            f"Payment status '{booking.payment_status.value}' has nothing to refund"
        )

    credited = standalone_credit(booking, credit_notes)
    available = max(booking.amount_paid - booking.total_refunded - credited, 0)
    if booking.amount_paid > 0 and available == 0:
        reasons.append("Paid amount is already covered by refunds or credit notes")

    if days_before < 0:
        reasons.append("Cancellation window closed at check-in")
        policy_amount = 0
    else:
        policy_amount = calculate_policy_amount(policy, booking.check_in, as_of, booking.amount_paid)
        if policy_amount == 0:
            reasons.append(
                f"Cancellation policy '{policy.value}' allows no refund "
                f"{days_before} day(s) before check-in"
            )

    max_refundable = min(available, max(policy_amount - booking.total_refunded - credited, 0))
    if reasons:
        max_refundable = 0
    elif max_refundable == 0:
        reasons.append("Policy amount has already been refunded")

    return RefundEligibility(
        eligible=max_refundable > 0,
        max_refundable=max_refundable,
        available_amount=available,
        policy_amount=policy_amount,
        policy=policy.value,
        days_before_check_in=days_before,
        reasons=tuple(reasons),
    )
