"""Internal endpoints for triggering scheduled jobs on demand."""

from datetime import date

from fastapi import APIRouter
from pydantic import BaseModel

from staydesk.api.deps import Jobs, StaffActor

router = APIRouter()


class AutoCheckoutResponse(BaseModel):
    """Auto-checkout run summary."""

    checked_out: list[str]
    skipped: list[str]


class NoShowResponse(BaseModel):
    """No-show detection run summary."""

    suspected: list[str]


@router.post("/jobs/auto-checkout", response_model=AutoCheckoutResponse)
async def run_auto_checkout(
    actor: StaffActor,
    jobs: Jobs,
    today: date | None = None,
) -> AutoCheckoutResponse:
    """Run auto-checkout now (staff only)."""
    results = await jobs.auto_checkout(today)
    return AutoCheckoutResponse(
        checked_out=[r.booking.booking_number for r in results if r.ok],
        skipped=[r.booking.booking_number for r in results if not r.ok],
    )


@router.post("/jobs/no-shows", response_model=NoShowResponse)
async def run_no_show_detection(
    actor: StaffActor,
    jobs: Jobs,
    today: date | None = None,
) -> NoShowResponse:
    """Run no-show detection now (staff only)."""
    suspects = await jobs.detect_no_shows(today)
    return NoShowResponse(suspected=[b.booking_number for b in suspects])
