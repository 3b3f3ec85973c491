"""Domain events handed to the notification collaborator after a commit."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from app.domain.booking_state import ActorRole, BookingStatus


class BookingEvent(BaseModel):
    """Fields shared by every booking event."""

    model_config = ConfigDict(frozen=True)

    booking_id: str
    actor_id: str
    actor_role: ActorRole
    version: int
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StatusChanged(BookingEvent):
    event_type: Literal["status_changed"] = "status_changed"
    from_status: BookingStatus
    to_status: BookingStatus
    step: str


class CancellationRequested(BookingEvent):
    event_type: Literal["cancellation_requested"] = "cancellation_requested"
    prior_status: BookingStatus
    reason: str


class CancellationResolved(BookingEvent):
    event_type: Literal["cancellation_resolved"] = "cancellation_resolved"
    action: Literal["approve", "deny"]
    from_status: BookingStatus
    to_status: BookingStatus
    review_notes: str | None = None


class DriverAssignmentChanged(BookingEvent):
    """Emitted on assign/unassign; the status does not change."""

    event_type: Literal["driver_assignment_changed"] = "driver_assignment_changed"
    driver_id: str | None
    previous_driver_id: str | None = None


class LocationUpdated(BookingEvent):
    """Emitted when the assigned driver reports a position; the status does not change."""

    event_type: Literal["location_updated"] = "location_updated"
    status: BookingStatus
    location: dict[str, Any]


DomainEvent = Union[
    StatusChanged,
    CancellationRequested,
    CancellationResolved,
    DriverAssignmentChanged,
    LocationUpdated,
]
