"""Payment state machine."""

from enum import Enum

from staydesk.core.exceptions import InvalidTransition, TerminalStateViolation


class PaymentStatus(str, Enum):
    """Booking payment status."""

    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.UNPAID: frozenset({PaymentStatus.PARTIALLY_PAID, PaymentStatus.PAID}),
    PaymentStatus.PARTIALLY_PAID: frozenset(
        {PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}
    ),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}),
    PaymentStatus.PARTIALLY_REFUNDED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

_missing = set(PaymentStatus) - set(PAYMENT_TRANSITIONS)
if _missing:
    raise RuntimeError(f"PAYMENT_TRANSITIONS is missing statuses: {sorted(s.value for s in _missing)}")

# Statuses that mean money is held for the booking
PAID_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.PAID, PaymentStatus.PARTIALLY_PAID}
)

# Statuses that can only be reached with a refund or credit note on record
REFUND_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}
)


def check_payment_transition(
    current: PaymentStatus, target: PaymentStatus
) -> InvalidTransition | TerminalStateViolation | None:
    """Return the error for ``current → target``, or None when allowed."""
    allowed = PAYMENT_TRANSITIONS[current]
    if not allowed:
        if target == current:
            return None
        return TerminalStateViolation(current.value, target.value)
    if target not in allowed:
        return InvalidTransition(current.value, target.value, {s.value for s in allowed})
    return None


def refunded_payment_status(amount_paid: int, total_refunded: int) -> PaymentStatus:
    """Payment status after ``total_refunded`` has gone back to the guest."""
    if total_refunded >= amount_paid:
        return PaymentStatus.REFUNDED
    return PaymentStatus.PARTIALLY_REFUNDED
