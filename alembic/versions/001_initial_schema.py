"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates the booking lifecycle tables:
- Bookings (with optimistic concurrency version)
- Booking status history
- Refund requests
- Credit notes
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_number", sa.String(20), unique=True, nullable=False, index=True),
        sa.Column("property_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("room_ids", postgresql.JSONB, server_default="[]"),
        sa.Column("guest_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("check_in", sa.Date, nullable=False, index=True),
        sa.Column("check_out", sa.Date, nullable=False, index=True),
        sa.Column("total_amount", sa.Integer, nullable=False),
        sa.Column("amount_paid", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_refunded", sa.Integer, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="ZAR"),
        sa.Column("cancellation_policy", sa.String(20), nullable=False, server_default="moderate"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("cancelled_by", sa.String(60)),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("checked_in_at", sa.DateTime(timezone=True)),
        sa.Column("checked_out_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("check_in < check_out", name="ck_bookings_date_range"),
        sa.CheckConstraint("total_amount >= 0", name="ck_bookings_total_amount"),
    )

    op.create_table(
        "booking_status_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("from_status", sa.String(20), nullable=False),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("from_payment_status", sa.String(20), nullable=False),
        sa.Column("to_payment_status", sa.String(20), nullable=False),
        sa.Column("actor_kind", sa.String(10), nullable=False),
        sa.Column("actor_id", sa.String(60)),
        sa.Column("reason", sa.Text),
        sa.Column("refund_request_id", postgresql.UUID(as_uuid=True)),
        sa.Column("credit_note_id", postgresql.UUID(as_uuid=True)),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )

    # ==================== REFUNDS ====================
    op.create_table(
        "refund_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("requested_amount", sa.Integer, nullable=False),
        sa.Column("approved_amount", sa.Integer),
        sa.Column("currency", sa.String(3), nullable=False, server_default="ZAR"),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="requested", index=True),
        sa.Column("requested_by", sa.String(60), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("reviewed_by", sa.String(60)),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("review_notes", sa.Text),
        sa.Column("processed_by", sa.String(60)),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("requested_amount > 0", name="ck_refund_requests_amount"),
    )

    op.create_table(
        "credit_notes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("credit_note_number", sa.String(24), unique=True, nullable=False, index=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("refund_request_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("refund_requests.id")),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="ZAR"),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("issued_by", sa.String(60), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_credit_notes_amount"),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("credit_notes")
    op.drop_table("refund_requests")
    op.drop_table("booking_status_history")
    op.drop_table("bookings")
