"""Booking lifecycle Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import ActorKind
from staydesk.domain.payment_state import PaymentStatus


class BookingStatusUpdate(BaseModel):
    """Schema for a booking status transition."""

    status: BookingStatus
    reason: str | None = Field(None, max_length=500)
    refund_request_id: UUID | None = None
    expected_version: int | None = Field(None, ge=1)
    waive_refund: bool = False


class PaymentStatusUpdate(BaseModel):
    """Schema for a payment status transition."""

    payment_status: PaymentStatus
    amount_paid: int | None = Field(None, ge=0)
    refund_request_id: UUID | None = None
    credit_note_id: UUID | None = None
    reason: str | None = Field(None, max_length=500)
    expected_version: int | None = Field(None, ge=1)


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    property_id: UUID
    room_ids: list[UUID]
    guest_id: UUID | None

    # Dates
    check_in: date
    check_out: date
    nights: int

    # Amounts
    total_amount: int
    amount_paid: int
    total_refunded: int
    currency: str
    cancellation_policy: str

    # Status
    status: BookingStatus
    payment_status: PaymentStatus
    version: int

    # Cancellation
    cancelled_by: str | None
    cancellation_reason: str | None

    # Timestamps
    created_at: datetime
    updated_at: datetime
    checked_in_at: datetime | None
    checked_out_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None


class StatusHistoryResponse(BaseModel):
    """Schema for a status history row."""

    model_config = ConfigDict(from_attributes=True)

    from_status: BookingStatus
    to_status: BookingStatus
    from_payment_status: PaymentStatus
    to_payment_status: PaymentStatus
    actor_kind: ActorKind
    actor_id: str | None
    reason: str | None
    refund_request_id: UUID | None
    credit_note_id: UUID | None
    changed_at: datetime


class RefundEligibilityResponse(BaseModel):
    """Schema for refund eligibility."""

    model_config = ConfigDict(from_attributes=True)

    eligible: bool
    max_refundable: int
    available_amount: int
    policy_amount: int
    policy: str
    policy_description: str
    days_before_check_in: int
    reasons: list[str]
