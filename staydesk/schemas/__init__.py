"""Pydantic schemas for API validation."""

from staydesk.schemas.booking import (
    BookingResponse,
    BookingStatusUpdate,
    PaymentStatusUpdate,
    RefundEligibilityResponse,
    StatusHistoryResponse,
)
from staydesk.schemas.refund import (
    CreditNoteCreate,
    CreditNoteResponse,
    RefundApprove,
    RefundReject,
    RefundRequestCreate,
    RefundRequestResponse,
)

__all__ = [
    # Booking
    "BookingResponse",
    "BookingStatusUpdate",
    "PaymentStatusUpdate",
    "RefundEligibilityResponse",
    "StatusHistoryResponse",
    # Refund
    "CreditNoteCreate",
    "CreditNoteResponse",
    "RefundApprove",
    "RefundReject",
    "RefundRequestCreate",
    "RefundRequestResponse",
]
