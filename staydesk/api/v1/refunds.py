"""Refund request review endpoints."""

from uuid import UUID

from fastapi import APIRouter

from staydesk.api.deps import CurrentActor, Refunds, StaffActor
from staydesk.schemas.booking import BookingResponse
from staydesk.schemas.refund import RefundApprove, RefundReject, RefundRequestResponse

router = APIRouter()


@router.post("/{refund_id}/approve", response_model=RefundRequestResponse)
async def approve_refund(
    refund_id: UUID,
    request: RefundApprove,
    actor: StaffActor,
    refunds: Refunds,
) -> RefundRequestResponse:
    """Approve a refund request (staff only)."""
    refund = await refunds.approve(
        refund_id, actor, approved_amount=request.approved_amount, notes=request.notes
    )
    return RefundRequestResponse.model_validate(refund)


@router.post("/{refund_id}/reject", response_model=RefundRequestResponse)
async def reject_refund(
    refund_id: UUID,
    request: RefundReject,
    actor: StaffActor,
    refunds: Refunds,
) -> RefundRequestResponse:
    """Reject a refund request (staff only)."""
    refund = await refunds.reject(refund_id, actor, request.notes)
    return RefundRequestResponse.model_validate(refund)


@router.post("/{refund_id}/withdraw", response_model=RefundRequestResponse)
async def withdraw_refund(
    refund_id: UUID,
    actor: CurrentActor,
    refunds: Refunds,
) -> RefundRequestResponse:
    """Withdraw a refund request."""
    refund = await refunds.withdraw(refund_id, actor)
    return RefundRequestResponse.model_validate(refund)


@router.post("/{refund_id}/process", response_model=BookingResponse)
async def process_refund(
    refund_id: UUID,
    actor: StaffActor,
    refunds: Refunds,
) -> BookingResponse:
    """Pay out an approved refund without cancelling the booking (staff only)."""
    result = await refunds.process(refund_id, actor)
    return BookingResponse.model_validate(result.unwrap(), from_attributes=True)
