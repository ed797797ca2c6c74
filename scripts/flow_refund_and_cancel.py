#!/usr/bin/env python3
"""
Refund and cancellation flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_refund_and_cancel.py --booking-id <UUID> --guest-id <UUID>
    python scripts/flow_refund_and_cancel.py --booking-id <UUID> --guest-id <UUID> --amount 50000
    python scripts/flow_refund_and_cancel.py --booking-id <UUID> --no-refund

Flow (refund):
    1. Check refund eligibility as the guest
    2. Cancel without a refund (expected to be refused for a paid booking)
    3. Request a refund as the guest
    4. Approve the refund as staff
    5. Cancel the booking with the approved refund

Flow (--no-refund):
    1. Cancel as staff with the no-refund override
"""

import argparse
import sys
from datetime import timedelta

import httpx

from staydesk.core.security import create_access_token

BASE_URL = "http://localhost:8000"
STAFF_ID = "flow-script"


def token_for(subject: str, role: str) -> str:
    """Mint a short-lived access token signed with the local JWT secret."""
    return create_access_token({"sub": subject, "role": role}, expires_delta=timedelta(minutes=5))


def api_request(token: str, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make authenticated API request."""
    headers = {"Authorization": f"Bearer {token}"}
    url = f"{BASE_URL}/api/v1{endpoint}"

    if method == "GET":
        response = httpx.get(url, headers=headers, timeout=10.0)
    elif method == "POST":
        response = httpx.post(url, headers=headers, json=data or {}, timeout=10.0)
    else:
        raise ValueError(f"Unknown method: {method}")

    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print status code and selected fields."""
    print(f"HTTP {result['status']}")
    data = result["data"]
    for field in fields or list(data):
        if field in data:
            print(f"  {field}: {data[field]}")


def require(result: dict, expected: int):
    if result["status"] != expected:
        print(f"ERROR: expected HTTP {expected}")
        sys.exit(1)


def run_refund_flow(booking_id: str, guest_id: str, amount: int | None):
    guest = token_for(guest_id, "guest")
    staff = token_for(STAFF_ID, "staff")

    print_step(1, "Check refund eligibility")
    result = api_request(guest, "GET", f"/bookings/{booking_id}/refund-eligibility")
    print_result(result, ["eligible", "max_refundable", "policy", "reasons"])
    require(result, 200)
    refund_amount = amount or result["data"]["max_refundable"]
    if refund_amount <= 0:
        print("Booking has nothing refundable; try --no-refund")
        sys.exit(1)

    print_step(2, "Cancel without a refund decision")
    result = api_request(guest, "POST", f"/bookings/{booking_id}/status", {"status": "cancelled"})
    print_result(result, ["code", "detail"])

    print_step(3, f"Request refund of {refund_amount}")
    result = api_request(
        guest,
        "POST",
        f"/bookings/{booking_id}/refunds",
        {"amount": refund_amount, "reason": "Guest cancelled"},
    )
    print_result(result, ["id", "status", "requested_amount"])
    require(result, 201)
    refund_id = result["data"]["id"]

    print_step(4, "Approve refund as staff")
    result = api_request(staff, "POST", f"/refunds/{refund_id}/approve", {})
    print_result(result, ["status", "approved_amount", "reviewed_by"])
    require(result, 200)

    print_step(5, "Cancel with approved refund")
    result = api_request(
        guest,
        "POST",
        f"/bookings/{booking_id}/status",
        {"status": "cancelled", "refund_request_id": refund_id, "reason": "Guest cancelled"},
    )
    print_result(result, ["status", "payment_status", "total_refunded", "version"])
    require(result, 200)


def run_no_refund_flow(booking_id: str):
    staff = token_for(STAFF_ID, "staff")

    print_step(1, "Cancel as staff without refund")
    result = api_request(
        staff,
        "POST",
        f"/bookings/{booking_id}/status",
        {"status": "cancelled", "reason": "Goodwill cancellation", "waive_refund": True},
    )
    print_result(result, ["status", "payment_status", "cancelled_by", "version"])
    require(result, 200)


def main():
    parser = argparse.ArgumentParser(description="Refund and cancellation flow")
    parser.add_argument("--booking-id", required=True, help="Confirmed, paid booking UUID")
    parser.add_argument("--guest-id", help="Guest UUID on the booking")
    parser.add_argument("--amount", type=int, help="Refund amount in minor units (default: max refundable)")
    parser.add_argument("--no-refund", action="store_true", help="Cancel with the staff no-refund override")
    args = parser.parse_args()

    if args.no_refund:
        run_no_refund_flow(args.booking_id)
    else:
        if not args.guest_id:
            parser.error("--guest-id is required for the refund flow")
        run_refund_flow(args.booking_id, args.guest_id, args.amount)

    print("\nFlow complete.")


if __name__ == "__main__":
    main()
