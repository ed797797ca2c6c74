"""Cancellation window policies.

Policies:
- flexible: Full refund up to 24h before check-in, 50% after
- moderate: Full refund up to 5 days before, 50% up to 24h, 0% after
- strict: 50% refund up to 7 days before, 0% after
- non_refundable: never refundable under policy (staff may still refund)

Once the check-in date has passed the window is closed for every policy.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class CancellationPolicy(str, Enum):
    """Cancellation policy types."""

    FLEXIBLE = "flexible"
    MODERATE = "moderate"
    STRICT = "strict"
    NON_REFUNDABLE = "non_refundable"


DEFAULT_POLICY = CancellationPolicy.MODERATE

# Refund rules: list of (days_before_checkin, refund_percentage)
# Evaluated in order - first match wins
POLICY_RULES: dict[CancellationPolicy, list[tuple[int, Decimal]]] = {
    CancellationPolicy.FLEXIBLE: [
        (1, Decimal("100")),   # 24h+ before: 100% refund
        (0, Decimal("50")),    # <24h: 50% refund
    ],
    CancellationPolicy.MODERATE: [
        (5, Decimal("100")),   # 5+ days before: 100% refund
        (1, Decimal("50")),    # 1-5 days before: 50% refund
        (0, Decimal("0")),     # <24h: no refund
    ],
    CancellationPolicy.STRICT: [
        (7, Decimal("50")),    # 7+ days before: 50% refund
        (0, Decimal("0")),     # <7 days: no refund
    ],
    CancellationPolicy.NON_REFUNDABLE: [],
}

POLICY_DESCRIPTIONS: dict[CancellationPolicy, str] = {
    CancellationPolicy.FLEXIBLE: (
        "Full refund up to 24 hours before check-in. "
        "50% refund if cancelled less than 24 hours before."
    ),
    CancellationPolicy.MODERATE: (
        "Full refund up to 5 days before check-in. "
        "50% refund if cancelled 1-5 days before. "
        "No refund if cancelled less than 24 hours before."
    ),
    CancellationPolicy.STRICT: (
        "50% refund up to 7 days before check-in. "
        "No refund if cancelled less than 7 days before."
    ),
    CancellationPolicy.NON_REFUNDABLE: "This booking is non-refundable.",
}


def resolve_policy(policy: str | CancellationPolicy | None) -> CancellationPolicy:
    """Coerce a stored policy name, falling back to moderate for unknown values."""
    if isinstance(policy, CancellationPolicy):
        return policy
    try:
        return CancellationPolicy(policy)
    except ValueError:
        return DEFAULT_POLICY


def days_before_check_in(check_in_date: date, as_of: date) -> int:
    return (check_in_date - as_of).days


def calculate_refund_percentage(
    policy: str | CancellationPolicy | None,
    check_in_date: date,
    as_of: date,
) -> Decimal:
    """Calculate refund percentage based on policy and timing.

    Args:
        policy: The cancellation policy type
        check_in_date: Booking check-in date
        as_of: Date the refund is evaluated for

    Returns:
        Decimal: Refund percentage (0-100)
    """
    days_before = days_before_check_in(check_in_date, as_of)
    for min_days, refund_pct in POLICY_RULES[resolve_policy(policy)]:
        if days_before >= min_days:
            return refund_pct
    return Decimal("0")


def calculate_policy_amount(
    policy: str | CancellationPolicy | None,
    check_in_date: date,
    as_of: date,
    amount_paid: int,
) -> int:
    """Amount (minor units) the policy allows back out of ``amount_paid``."""
    refund_pct = calculate_refund_percentage(policy, check_in_date, as_of)
    amount = (Decimal(amount_paid) * refund_pct / Decimal("100")).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(amount)


def get_policy_description(policy: str | CancellationPolicy | None) -> str:
    """Get human-readable policy description."""
    return POLICY_DESCRIPTIONS[resolve_policy(policy)]
