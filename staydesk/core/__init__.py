"""Core utilities and security modules."""

from staydesk.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    ConcurrentModificationError,
    InvalidTransition,
    NotFoundError,
    RefundRequiredError,
    TerminalStateViolation,
    TransitionError,
    TransitionTimeoutError,
    ValidationError,
)
from staydesk.core.security import create_access_token, verify_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "ConcurrentModificationError",
    "InvalidTransition",
    "NotFoundError",
    "RefundRequiredError",
    "TerminalStateViolation",
    "TransitionError",
    "TransitionTimeoutError",
    "ValidationError",
    "create_access_token",
    "verify_token",
]
