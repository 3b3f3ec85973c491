"""Append-only enforcement for booking tracking history using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify an append-only record."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Tracking history is append-only."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for append-only tracking steps.

    Must be called after models are imported but before session use. Safe to
    call more than once.
    """
    global _registered
    if _registered:
        return

    from app.models.transport import BookingTrackingStep

    @event.listens_for(BookingTrackingStep, "before_update")
    def prevent_tracking_step_update(mapper, connection, target):
        """Prevent updates to BookingTrackingStep (append-only)."""
        _log_immutability_violation("BookingTrackingStep", "UPDATE", str(target.id))
        raise ImmutabilityViolationError("BookingTrackingStep", "UPDATE", str(target.id))

    @event.listens_for(BookingTrackingStep, "before_delete")
    def prevent_tracking_step_delete(mapper, connection, target):
        """Prevent deletion of BookingTrackingStep (append-only)."""
        _log_immutability_violation("BookingTrackingStep", "DELETE", str(target.id))
        raise ImmutabilityViolationError("BookingTrackingStep", "DELETE", str(target.id))

    _registered = True
    logger.info("Immutability enforcement registered for booking tracking steps")
