"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        self.resource = resource
        self.identifier = identifier
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# ==================== BOOKING LIFECYCLE ====================


class TransitionError(AppException):
    """Base class for rejected status transitions.

    These are returned inside a ``TransitionResult`` by the lifecycle manager
    rather than raised; the API layer raises them to render the response.
    """

    code = "transition_error"

    def __init__(self, detail: str, status_code: int = status.HTTP_409_CONFLICT) -> None:
        super().__init__(status_code=status_code, detail=detail)


class InvalidTransition(TransitionError):
    """Requested edge is not in the adjacency table."""

    code = "invalid_transition"

    def __init__(self, current: str, target: str, allowed: frozenset[str] | set[str] = frozenset()) -> None:
        self.current = current
        self.target = target
        self.allowed = frozenset(allowed)
        detail = f"Invalid transition: {current} → {target}"
        if self.allowed:
            detail = f"{detail}. Valid transitions are: {', '.join(sorted(self.allowed))}"
        super().__init__(detail)


class TerminalStateViolation(TransitionError):
    """Attempted to move a booking out of a terminal status."""

    code = "terminal_state_violation"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Status '{current}' is terminal and cannot be changed to '{target}'"
        )


class RefundRequiredError(TransitionError):
    """A paid booking cannot be cancelled or refunded without refund intent."""

    code = "refund_required"

    def __init__(self, detail: str = "A refund decision is required before cancelling a paid booking") -> None:
        super().__init__(detail, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class ConcurrentModificationError(TransitionError):
    """Optimistic-lock conflict: the booking changed since it was read."""

    code = "concurrent_modification"

    def __init__(self, booking_id: str, expected_version: int) -> None:
        self.booking_id = booking_id
        self.expected_version = expected_version
        super().__init__(
            f"Booking '{booking_id}' was modified concurrently "
            f"(expected version {expected_version}). Re-read and retry."
        )


class TransitionTimeoutError(AppException):
    """Transition did not complete within the configured timeout."""

    def __init__(self, booking_id: str, timeout: float) -> None:
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Transition for booking '{booking_id}' timed out after {timeout:.1f}s",
        )


class ExternalServiceError(AppException):
    """External service error."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)
