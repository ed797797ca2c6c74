"""Refund request and credit note Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from staydesk.domain.refund_state import RefundStatus


class RefundRequestCreate(BaseModel):
    """Schema for opening a refund request."""

    amount: int = Field(..., gt=0, description="Amount in minor currency units")
    reason: str = Field(..., min_length=3, max_length=500)


class RefundApprove(BaseModel):
    """Schema for approving a refund request."""

    approved_amount: int | None = Field(None, gt=0)
    notes: str | None = Field(None, max_length=500)


class RefundReject(BaseModel):
    """Schema for rejecting a refund request."""

    notes: str = Field(..., min_length=3, max_length=500)


class RefundRequestResponse(BaseModel):
    """Schema for refund request response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    requested_amount: int
    approved_amount: int | None
    currency: str
    status: RefundStatus
    reason: str
    requested_by: str
    requested_at: datetime
    reviewed_by: str | None
    reviewed_at: datetime | None
    review_notes: str | None
    processed_by: str | None
    processed_at: datetime | None


class CreditNoteCreate(BaseModel):
    """Schema for issuing a credit note."""

    amount: int = Field(..., gt=0)
    reason: str = Field(..., min_length=3, max_length=500)
    refund_request_id: UUID | None = None


class CreditNoteResponse(BaseModel):
    """Schema for credit note response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    credit_note_number: str
    booking_id: UUID
    refund_request_id: UUID | None
    amount: int
    currency: str
    reason: str
    issued_by: str
    issued_at: datetime
