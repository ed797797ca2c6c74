"""Booking lifecycle endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from staydesk.api.deps import CreditNotes, CurrentActor, LifecycleManager, Refunds, StaffActor, Store
from staydesk.core.exceptions import AuthorizationError
from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.cancellation_policy import get_policy_description
from staydesk.domain.entities import Actor, ActorKind, Booking
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
    RefundRequestCreate,
    RefundRequestResponse,
)

router = APIRouter()


def _check_access(booking: Booking, actor: Actor) -> None:
    """Guests may only act on their own bookings."""
    if actor.kind == ActorKind.GUEST and str(booking.guest_id) != actor.id:
        raise AuthorizationError("You don't have permission to access this booking")


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse.model_validate(booking, from_attributes=True)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: UUID, actor: CurrentActor, store: Store) -> BookingResponse:
    """Get booking details."""
    booking = await store.get_booking(booking_id)
    _check_access(booking, actor)
    return _booking_response(booking)


@router.get("/{booking_id}/history", response_model=list[StatusHistoryResponse])
async def get_booking_history(
    booking_id: UUID, actor: StaffActor, store: Store
) -> list[StatusHistoryResponse]:
    """Get the status history of a booking (staff only)."""
    await store.get_booking(booking_id)
    history = await store.list_status_history(booking_id)
    return [StatusHistoryResponse.model_validate(change) for change in history]


@router.post("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    request: BookingStatusUpdate,
    actor: CurrentActor,
    store: Store,
    lifecycle: LifecycleManager,
) -> BookingResponse:
    """Transition a booking to a new status.

    Guests can only cancel their own bookings; every other transition is
    performed by staff or the system.
    """
    booking = await store.get_booking(booking_id)
    _check_access(booking, actor)
    if actor.kind == ActorKind.GUEST and request.status != BookingStatus.CANCELLED:
        raise AuthorizationError("Guests can only cancel bookings")

    result = await lifecycle.transition_status(
        booking_id,
        request.status,
        actor,
        reason=request.reason,
        refund_request_id=request.refund_request_id,
        expected_version=request.expected_version,
        waive_refund=request.waive_refund,
    )
    return _booking_response(result.unwrap())


@router.post("/{booking_id}/payment-status", response_model=BookingResponse)
async def update_payment_status(
    booking_id: UUID,
    request: PaymentStatusUpdate,
    actor: StaffActor,
    lifecycle: LifecycleManager,
) -> BookingResponse:
    """Record a payment status change (staff only)."""
    result = await lifecycle.transition_payment_status(
        booking_id,
        request.payment_status,
        actor,
        amount_paid=request.amount_paid,
        refund_request_id=request.refund_request_id,
        credit_note_id=request.credit_note_id,
        reason=request.reason,
        expected_version=request.expected_version,
    )
    return _booking_response(result.unwrap())


@router.get("/{booking_id}/refund-eligibility", response_model=RefundEligibilityResponse)
async def get_refund_eligibility(
    booking_id: UUID,
    actor: CurrentActor,
    store: Store,
    refunds: Refunds,
    as_of: date | None = Query(None, description="Evaluation date (defaults to today)"),
) -> RefundEligibilityResponse:
    """Check how much of a booking can be refunded."""
    booking = await store.get_booking(booking_id)
    _check_access(booking, actor)
    eligibility = await refunds.check_eligibility(booking_id, as_of)
    return RefundEligibilityResponse(
        **eligibility.model_dump(),
        policy_description=get_policy_description(eligibility.policy),
    )


@router.get("/{booking_id}/refunds", response_model=list[RefundRequestResponse])
async def list_refund_requests(
    booking_id: UUID, actor: CurrentActor, store: Store
) -> list[RefundRequestResponse]:
    """List refund requests for a booking."""
    booking = await store.get_booking(booking_id)
    _check_access(booking, actor)
    refunds = await store.list_refund_requests(booking_id)
    return [RefundRequestResponse.model_validate(refund) for refund in refunds]


@router.post(
    "/{booking_id}/refunds",
    response_model=RefundRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_refund_request(
    booking_id: UUID,
    request: RefundRequestCreate,
    actor: CurrentActor,
    store: Store,
    refunds: Refunds,
) -> RefundRequestResponse:
    """Open a refund request for a booking."""
    booking = await store.get_booking(booking_id)
    _check_access(booking, actor)
    refund = await refunds.create_refund_request(booking_id, request.amount, request.reason, actor)
    return RefundRequestResponse.model_validate(refund)


@router.get("/{booking_id}/credit-notes", response_model=list[CreditNoteResponse])
async def list_credit_notes(
    booking_id: UUID, actor: StaffActor, credit_notes: CreditNotes
) -> list[CreditNoteResponse]:
    """List credit notes issued against a booking (staff only)."""
    notes = await credit_notes.list_credit_notes(booking_id)
    return [CreditNoteResponse.model_validate(note) for note in notes]


@router.post(
    "/{booking_id}/credit-notes",
    response_model=CreditNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_credit_note(
    booking_id: UUID,
    request: CreditNoteCreate,
    actor: StaffActor,
    credit_notes: CreditNotes,
) -> CreditNoteResponse:
    """Issue a credit note (staff only)."""
    note = await credit_notes.issue_credit_note(
        booking_id,
        request.amount,
        request.reason,
        actor,
        refund_request_id=request.refund_request_id,
    )
    return CreditNoteResponse.model_validate(note)
