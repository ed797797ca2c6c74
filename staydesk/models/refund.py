"""Refund request and credit note models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from staydesk.database import Base

if TYPE_CHECKING:
    from staydesk.models.booking import Booking


class RefundRequest(Base):
    """Refund request raised by a guest or staff member."""

    __tablename__ = "refund_requests"
    __table_args__ = (
        CheckConstraint("requested_amount > 0", name="ck_refund_requests_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )

    # Amount (minor units)
    requested_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_amount: Mapped[int | None] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="requested", index=True
    )  # requested, approved, rejected, processed, withdrawn

    # Review
    requested_by: Mapped[str] = mapped_column(String(60), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(60))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    review_notes: Mapped[str | None] = mapped_column(Text)
    processed_by: Mapped[str | None] = mapped_column(String(60))
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="refund_requests")


class CreditNote(Base):
    """Credit note ledger entry.

    This record MUST NOT be modified or deleted after creation.
    """

    __tablename__ = "credit_notes"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_credit_notes_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    credit_note_number: Mapped[str] = mapped_column(
        String(24), unique=True, nullable=False, index=True
    )  # CN-YYYYMMDD-XXXX
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    refund_request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("refund_requests.id")
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ZAR")
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    issued_by: Mapped[str] = mapped_column(String(60), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="credit_notes")
