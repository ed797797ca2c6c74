"""Immutability enforcement for ledger records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event

from staydesk.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify immutable ledger records."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Ledger records are immutable after creation."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _guard(model, operation: str) -> None:
    model_name = model.__name__
    hook = "before_update" if operation == "UPDATE" else "before_delete"

    @event.listens_for(model, hook)
    def prevent(mapper, connection, target):
        _log_immutability_violation(model_name, operation, str(target.id))
        raise ImmutabilityViolationError(model_name, operation, str(target.id))


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for append-only tables.

    Must be called after models are imported but before session use. Safe to
    call more than once.
    """
    global _registered
    if _registered:
        return

    from staydesk.models.booking import BookingStatusHistory
    from staydesk.models.refund import CreditNote

    # CreditNote: issued once, never edited or removed
    _guard(CreditNote, "UPDATE")
    _guard(CreditNote, "DELETE")

    # BookingStatusHistory: append-only audit trail
    _guard(BookingStatusHistory, "UPDATE")
    _guard(BookingStatusHistory, "DELETE")

    _registered = True
    logger.info("Immutability enforcement registered for ledger records")
