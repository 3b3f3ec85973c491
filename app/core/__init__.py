"""Core utilities: exceptions, logging and middleware."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    CancellationAlreadyPending,
    ConcurrentModification,
    DriverAlreadyAssigned,
    GuardFailed,
    InvalidTransition,
    NotFoundError,
    RepositoryUnavailable,
    ValidationError,
)

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "CancellationAlreadyPending",
    "ConcurrentModification",
    "DriverAlreadyAssigned",
    "GuardFailed",
    "InvalidTransition",
    "NotFoundError",
    "RepositoryUnavailable",
    "ValidationError",
]
