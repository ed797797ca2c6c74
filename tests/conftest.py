"""Shared fixtures for the booking lifecycle tests."""

import os

# Settings are read at import time; point the engine at SQLite before anything imports it.
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")

from datetime import UTC, date, datetime
from typing import Any
from uuid import uuid4

import pytest

from staydesk.domain.booking_state import BookingStatus
from staydesk.domain.entities import Actor, ActorKind, Booking
from staydesk.domain.payment_state import PaymentStatus
from staydesk.repositories.memory import InMemoryBookingStore
from staydesk.services.lifecycle_service import BookingLifecycleManager
from staydesk.utils.booking_number import generate_booking_number

NOW = datetime(2026, 6, 1, 10, 0, tzinfo=UTC)


class RecordingNotifier:
    """Notifier that keeps every emitted event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]


class FailingNotifier:
    """Notifier whose transport is down."""

    def __init__(self) -> None:
        self.calls = 0

    async def emit(self, event_type: str, payload: dict[str, Any]) -> None:
        self.calls += 1
        raise ConnectionError("notification transport unavailable")


def build_booking(**overrides: Any) -> Booking:
    """Booking snapshot with sensible defaults: confirmed, unpaid, 3 nights."""
    values: dict[str, Any] = {
        "id": uuid4(),
        "booking_number": generate_booking_number(),
        "property_id": uuid4(),
        "room_ids": (uuid4(),),
        "guest_id": uuid4(),
        "check_in": date(2026, 6, 15),
        "check_out": date(2026, 6, 18),
        "total_amount": 100000,
        "status": BookingStatus.CONFIRMED,
        "payment_status": PaymentStatus.UNPAID,
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return Booking(**values)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def manager(store, notifier, clock) -> BookingLifecycleManager:
    return BookingLifecycleManager(store, notifier, timeout=5.0, clock=clock)


@pytest.fixture
def staff() -> Actor:
    return Actor(kind=ActorKind.STAFF, id="staff-1")


@pytest.fixture
def system() -> Actor:
    return Actor.system("test")


@pytest.fixture
def add_booking(store):
    """Factory: store a booking and return the stored snapshot."""

    async def _add(**overrides: Any) -> Booking:
        return await store.add_booking(build_booking(**overrides))

    return _add


@pytest.fixture
def guest_of():
    """Actor for the guest who owns a booking."""

    def _guest(booking: Booking) -> Actor:
        return Actor(kind=ActorKind.GUEST, id=str(booking.guest_id))

    return _guest
