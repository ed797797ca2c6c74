"""Booking state machine.

States: pending → confirmed → checked_in → checked_out → completed,
with cancelled and no_show as the other exits. Terminal states never change.
"""

from enum import Enum

from staydesk.core.exceptions import InvalidTransition, TerminalStateViolation


class BookingStatus(str, Enum):
    """Booking lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT, BookingStatus.COMPLETED}),
    BookingStatus.CHECKED_OUT: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

TERMINAL_BOOKING_STATUSES: frozenset[BookingStatus] = frozenset(
    status for status, allowed in BOOKING_TRANSITIONS.items() if not allowed
)

# Every member needs a row, otherwise a new status would silently be terminal.
_missing = set(BookingStatus) - set(BOOKING_TRANSITIONS)
if _missing:
    raise RuntimeError(f"BOOKING_TRANSITIONS is missing statuses: {sorted(s.value for s in _missing)}")


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_BOOKING_STATUSES


def check_booking_transition(
    current: BookingStatus, target: BookingStatus
) -> InvalidTransition | TerminalStateViolation | None:
    """Return the error for ``current → target``, or None when allowed.

    Re-requesting the same terminal status is allowed (the caller treats it
    as a no-op).
    """
    if is_terminal(current):
        if target == current:
            return None
        return TerminalStateViolation(current.value, target.value)

    allowed = BOOKING_TRANSITIONS[current]
    if target not in allowed:
        return InvalidTransition(current.value, target.value, {s.value for s in allowed})
    return None


def assert_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise if ``current → target`` is not allowed."""
    error = check_booking_transition(current, target)
    if error is not None:
        raise error
