"""API dependencies for authentication and lifecycle services."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from staydesk.core.exceptions import AuthenticationError, AuthorizationError
from staydesk.core.security import verify_token
from staydesk.database import get_db
from staydesk.domain.entities import Actor, ActorKind
from staydesk.repositories.base import BookingStore
from staydesk.repositories.sqlalchemy_store import SqlAlchemyBookingStore
from staydesk.services.booking_jobs import BookingJobs
from staydesk.services.credit_note_service import CreditNoteService
from staydesk.services.lifecycle_service import BookingLifecycleManager
from staydesk.services.notification_service import Notifier, notification_service
from staydesk.services.refund_service import RefundService

# Security scheme
security = HTTPBearer()

# Token roles issued by the identity service → lifecycle actor kinds
ROLE_ACTOR_KINDS: dict[str, ActorKind] = {
    "guest": ActorKind.GUEST,
    "staff": ActorKind.STAFF,
    "manager": ActorKind.STAFF,
    "owner": ActorKind.STAFF,
    "admin": ActorKind.STAFF,
    "system": ActorKind.SYSTEM,
}


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """Resolve the acting user from the bearer token's ``sub`` and ``role``."""
    payload = verify_token(credentials.credentials, token_type="access")
    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Invalid token payload")

    kind = ROLE_ACTOR_KINDS.get(payload.get("role", "guest"))
    if kind is None:
        raise AuthorizationError(f"Role '{payload.get('role')}' cannot manage bookings")
    return Actor(kind=kind, id=str(subject))


async def get_staff_actor(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """Current actor, restricted to staff and system tokens."""
    if not actor.is_privileged:
        raise AuthorizationError("Staff access required")
    return actor


async def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> BookingStore:
    return SqlAlchemyBookingStore(db)


def get_notifier() -> Notifier:
    return notification_service


def get_lifecycle_manager(
    store: Annotated[BookingStore, Depends(get_store)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> BookingLifecycleManager:
    return BookingLifecycleManager(store, notifier)


def get_refund_service(
    store: Annotated[BookingStore, Depends(get_store)],
    lifecycle: Annotated[BookingLifecycleManager, Depends(get_lifecycle_manager)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> RefundService:
    return RefundService(store, lifecycle, notifier)


def get_credit_note_service(
    store: Annotated[BookingStore, Depends(get_store)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> CreditNoteService:
    return CreditNoteService(store, notifier)


def get_booking_jobs(
    store: Annotated[BookingStore, Depends(get_store)],
    lifecycle: Annotated[BookingLifecycleManager, Depends(get_lifecycle_manager)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> BookingJobs:
    return BookingJobs(store, lifecycle, notifier)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
StaffActor = Annotated[Actor, Depends(get_staff_actor)]
Store = Annotated[BookingStore, Depends(get_store)]
LifecycleManager = Annotated[BookingLifecycleManager, Depends(get_lifecycle_manager)]
Refunds = Annotated[RefundService, Depends(get_refund_service)]
CreditNotes = Annotated[CreditNoteService, Depends(get_credit_note_service)]
Jobs = Annotated[BookingJobs, Depends(get_booking_jobs)]
