"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code = "internal_error"

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    code = "validation_error"

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "not_found"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        self.resource = resource
        self.identifier = identifier
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    code = "authentication_failed"

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization failed exception."""

    code = "forbidden"

    def __init__(self, detail: str = "Not authorized to perform this action") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class InvalidTransition(AppException):
    """Requested transition is not permitted from the current state for this actor."""

    code = "invalid_transition"

    def __init__(
        self,
        from_status: str,
        transition: str,
        actor_role: str,
        detail: str | None = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ) -> None:
        self.from_status = from_status
        self.transition = transition
        self.actor_role = actor_role
        if detail is None:
            detail = f"Invalid booking transition: {from_status} → {transition} (actor: {actor_role})"
        super().__init__(status_code=status_code, detail=detail)


class GuardFailed(InvalidTransition):
    """A transition exists but one of its guards does not hold."""

    code = "guard_failed"

    def __init__(
        self,
        guard_name: str,
        detail: str,
        from_status: str = "",
        transition: str = "",
        actor_role: str = "",
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ) -> None:
        self.guard_name = guard_name
        super().__init__(
            from_status=from_status,
            transition=transition,
            actor_role=actor_role,
            detail=detail,
            status_code=status_code,
        )


class DriverAlreadyAssigned(GuardFailed):
    """A driver is already assigned to the booking."""

    code = "driver_already_assigned"

    def __init__(self, driver_id: str | None = None, **context: str) -> None:
        self.driver_id = driver_id
        detail = "A driver is already assigned to this booking"
        if driver_id:
            detail = f"Driver '{driver_id}' is already assigned to this booking"
        super().__init__(
            guard_name="driver_unassigned",
            detail=detail,
            status_code=status.HTTP_409_CONFLICT,
            **context,
        )


class CancellationAlreadyPending(GuardFailed):
    """A cancellation request is already awaiting review."""

    code = "cancellation_already_pending"

    def __init__(self, **context: str) -> None:
        super().__init__(
            guard_name="no_pending_cancellation",
            detail="Cancellation request already submitted",
            status_code=status.HTTP_409_CONFLICT,
            **context,
        )


class ConcurrentModification(AppException):
    """The booking was changed by another writer since it was read."""

    code = "concurrent_modification"

    def __init__(self, expected_version: int, actual_version: int | None) -> None:
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Booking was modified concurrently (expected version {expected_version}, "
                f"found {actual_version}). Reload and try again."
            ),
        )


class ExternalServiceError(AppException):
    """External service error."""

    code = "service_unavailable"

    def __init__(self, service: str, detail: str | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


class RepositoryUnavailable(ExternalServiceError):
    """Booking storage did not answer in time."""

    code = "repository_unavailable"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__("booking-repository", detail)
