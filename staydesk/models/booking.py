"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from staydesk.database import Base

if TYPE_CHECKING:
    from staydesk.models.refund import CreditNote, RefundRequest


class Booking(Base):
    """Booking model.

    ``version`` is the optimistic concurrency counter: every status write is
    conditional on it and increments it.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_in < check_out", name="ck_bookings_date_range"),
        CheckConstraint("total_amount >= 0", name="ck_bookings_total_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # SD-XXXXXX
    property_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    room_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    guest_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)

    # Dates
    check_in: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Amounts (minor currency units)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_refunded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    cancellation_policy: Mapped[str] = mapped_column(
        String(20), nullable=False, default="moderate"
    )  # flexible, moderate, strict, non_refundable

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, confirmed, checked_in, checked_out, completed, cancelled, no_show
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="unpaid"
    )  # unpaid, partially_paid, paid, partially_refunded, refunded
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Cancellation
    cancelled_by: Mapped[str | None] = mapped_column(String(60))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    checked_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    refund_requests: Mapped[list["RefundRequest"]] = relationship(
        "RefundRequest", back_populates="booking"
    )
    credit_notes: Mapped[list["CreditNote"]] = relationship(
        "CreditNote", back_populates="booking"
    )
    status_history: Mapped[list["BookingStatusHistory"]] = relationship(
        "BookingStatusHistory", back_populates="booking", order_by="BookingStatusHistory.changed_at"
    )


class BookingStatusHistory(Base):
    """Append-only record of every status and payment-status change."""

    __tablename__ = "booking_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    from_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    from_payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_kind: Mapped[str] = mapped_column(String(10), nullable=False)  # guest, staff, system
    actor_id: Mapped[str | None] = mapped_column(String(60))
    reason: Mapped[str | None] = mapped_column(Text)
    refund_request_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    credit_note_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="status_history")
