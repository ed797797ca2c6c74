"""Immutable snapshots of lifecycle records.

Snapshots are read from the store once per operation; the lifecycle manager
never mutates them, it writes a new version through the store instead.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.cancellation_policy import DEFAULT_POLICY
from staydesk.domain.payment_state import PaymentStatus
from staydesk.domain.refund_state import RefundStatus


class ActorKind(str, Enum):
    """Who initiated a change."""

    GUEST = "guest"
    STAFF = "staff"
    SYSTEM = "system"


class Actor(BaseModel):
    """Initiator of a change, recorded for audit."""

    model_config = ConfigDict(frozen=True)

    kind: ActorKind
    id: str | None = None

    @property
    def is_privileged(self) -> bool:
        """Staff and automated jobs may override refund decisions."""
        return self.kind in (ActorKind.STAFF, ActorKind.SYSTEM)

    @classmethod
    def system(cls, job: str | None = None) -> "Actor":
        return cls(kind=ActorKind.SYSTEM, id=job)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}" if self.id else self.kind.value


class Booking(BaseModel):
    """Booking as read from the store."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    booking_number: str
    property_id: UUID
    room_ids: tuple[UUID, ...] = ()
    guest_id: UUID | None = None

    check_in: date
    check_out: date

    # Amounts in minor currency units
    total_amount: int = Field(ge=0)
    amount_paid: int = Field(default=0, ge=0)
    total_refunded: int = Field(default=0, ge=0)
    currency: str = "ZAR"
    cancellation_policy: str = DEFAULT_POLICY.value

    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    version: int = 1

    cancelled_by: str | None = None
    cancellation_reason: str | None = None

    created_at: datetime
    updated_at: datetime
    checked_in_at: datetime | None = None
    checked_out_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @model_validator(mode="after")
    def check_date_range(self) -> "Booking":
        if self.check_in >= self.check_out:
            raise ValueError("check_in must be before check_out")
        return self

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def refund_base(self) -> int:
        """Amount refunds are measured against: what the guest actually paid."""
        return self.amount_paid or self.total_amount


class RefundRequest(BaseModel):
    """Refund request as read from the store."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    booking_id: UUID
    requested_amount: int = Field(gt=0)
    approved_amount: int | None = None
    currency: str = "ZAR"
    status: RefundStatus = RefundStatus.REQUESTED
    reason: str

    requested_by: str
    requested_at: datetime
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    processed_by: str | None = None
    processed_at: datetime | None = None

    @property
    def amount(self) -> int:
        """Amount that will be (or was) returned to the guest."""
        if self.approved_amount is not None:
            return self.approved_amount
        return self.requested_amount


class CreditNote(BaseModel):
    """Issued credit note. Never changes after issue."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    credit_note_number: str
    booking_id: UUID
    refund_request_id: UUID | None = None
    amount: int = Field(gt=0)
    currency: str = "ZAR"
    reason: str
    issued_by: str
    issued_at: datetime


class StatusChange(BaseModel):
    """Append-only history row for a booking status or payment change."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    booking_id: UUID
    from_status: BookingStatus
    to_status: BookingStatus
    from_payment_status: PaymentStatus
    to_payment_status: PaymentStatus
    actor_kind: ActorKind
    actor_id: str | None = None
    reason: str | None = None
    refund_request_id: UUID | None = None
    credit_note_id: UUID | None = None
    changed_at: datetime


class LifecycleEvent(BaseModel):
    """Payload emitted to the notification collaborator after a transition."""

    model_config = ConfigDict(frozen=True)

    event_type: str
    booking_id: UUID
    booking_number: str
    old_status: str
    new_status: str
    actor: Actor
    reason: str | None = None
    occurred_at: datetime

    @computed_field
    @property
    def dedup_key(self) -> str:
        """Consumers deduplicate on (booking, new status, timestamp)."""
        return f"{self.booking_id}:{self.new_status}:{self.occurred_at.isoformat()}"
