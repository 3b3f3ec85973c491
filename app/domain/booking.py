"""Transport booking snapshot models.

A ``Booking`` is an immutable snapshot of one stored version. Transitions
never mutate a snapshot in place; they build the next version with
``model_copy(update=...)`` and hand it to the repository.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.domain.booking_state import ActorRole, BookingStatus


class Actor(BaseModel):
    """Identity of the caller driving a transition."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: ActorRole


class CancellationStatus(str, Enum):
    """Cancellation request review states."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class TrackingStep(BaseModel):
    """One immutable entry of a booking's fulfillment history."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    step: str
    timestamp: datetime
    location: str | None = None
    notes: str | None = None
    actor_id: str | None = None


class CancellationRequest(BaseModel):
    """Customer cancellation request and its review outcome."""

    model_config = ConfigDict(frozen=True)

    requested_by: str
    requested_at: datetime
    reason: str
    status: CancellationStatus = CancellationStatus.PENDING
    reviewed_by: str | None = None
    review_notes: str | None = None
    reviewed_at: datetime | None = None
    # Status to resume into on denial; cleared once approved.
    prior_status: BookingStatus | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == CancellationStatus.PENDING


class Booking(BaseModel):
    """Transport booking snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str
    tracking_id: str
    customer_id: str
    customer_name: str
    vehicle_id: str | None = None
    driver_id: str | None = None
    status: BookingStatus = BookingStatus.PENDING

    # Carried for the UI, never interpreted by the lifecycle
    from_location: dict[str, Any] = Field(default_factory=dict)
    to_location: dict[str, Any] = Field(default_factory=dict)
    distance: float | None = None
    final_amount: float | None = None
    cargo_description: str | None = None
    # Last position reported by the driver; not part of the step history
    current_location: dict[str, Any] | None = None

    tracking_steps: tuple[TrackingStep, ...] = ()
    cancellation_request: CancellationRequest | None = None
    version: int = 1

    # Timestamps
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None = None
    accepted_at: datetime | None = None
    delivered_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def has_pending_cancellation(self) -> bool:
        return self.cancellation_request is not None and self.cancellation_request.is_pending


class TransitionPayload(BaseModel):
    """Optional caller-supplied context recorded on the tracking step."""

    model_config = ConfigDict(frozen=True)

    location: str | None = None
    notes: str | None = None
