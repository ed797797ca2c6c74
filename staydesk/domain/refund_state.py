"""Refund request state machine.

States: requested → approved → processed, with rejected and withdrawn exits.
"""

from enum import Enum

from staydesk.core.exceptions import ValidationError


class RefundStatus(str, Enum):
    """Refund request status."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    WITHDRAWN = "withdrawn"


REFUND_TRANSITIONS: dict[RefundStatus, frozenset[RefundStatus]] = {
    RefundStatus.REQUESTED: frozenset(
        {RefundStatus.APPROVED, RefundStatus.REJECTED, RefundStatus.WITHDRAWN}
    ),
    RefundStatus.APPROVED: frozenset({RefundStatus.PROCESSED, RefundStatus.WITHDRAWN}),
    RefundStatus.REJECTED: frozenset(),  # Terminal state
    RefundStatus.PROCESSED: frozenset(),  # Terminal state
    RefundStatus.WITHDRAWN: frozenset(),  # Terminal state
}

# Requests that block a new request for the same booking
ACTIVE_REFUND_STATUSES: frozenset[RefundStatus] = frozenset(
    {RefundStatus.REQUESTED, RefundStatus.APPROVED}
)

# Requests that count as refund intent for a cancellation
SETTLED_REFUND_STATUSES: frozenset[RefundStatus] = frozenset(
    {RefundStatus.APPROVED, RefundStatus.PROCESSED}
)


def assert_refund_transition(current: RefundStatus, target: RefundStatus) -> None:
    """Validate refund request state transition."""
    if target not in REFUND_TRANSITIONS[current]:
        raise ValidationError(f"Invalid refund transition: {current.value} → {target.value}")
