"""Database models."""

from staydesk.models.booking import Booking, BookingStatusHistory
from staydesk.models.refund import CreditNote, RefundRequest

__all__ = [
    # Booking
    "Booking",
    "BookingStatusHistory",
    # Refunds
    "RefundRequest",
    "CreditNote",
]
