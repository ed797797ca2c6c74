"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from staydesk.api.v1 import bookings, internal, refunds

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Refunds
api_router.include_router(refunds.router, prefix="/refunds", tags=["Refunds"])

# Internal
api_router.include_router(internal.router, prefix="/internal", tags=["Internal"])
