"""Transport booking Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.booking import CancellationStatus
from app.domain.booking_state import DRIVER_STEPS, BookingStatus, Transition
from app.services.cancellation_service import ReviewAction


class LocationSchema(BaseModel):
    """Pickup or drop-off address, stored as given."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    state: str | None = None
    district: str | None = None
    city: str | None = None
    pin_code: str | None = Field(None, alias="pinCode")
    address: str | None = None


class BookingCreate(BaseModel):
    """Schema for booking intake."""

    customer_id: str = Field(..., min_length=1, max_length=64)
    customer_name: str = Field(..., min_length=1, max_length=200)
    vehicle_id: str | None = Field(None, max_length=64)
    from_location: LocationSchema
    to_location: LocationSchema
    distance: float | None = Field(None, gt=0)
    final_amount: float | None = Field(None, ge=0)
    cargo_description: str | None = Field(None, max_length=1000)


class AssignDriverRequest(BaseModel):
    """Schema for assigning a driver."""

    driver_id: str = Field(..., min_length=1, max_length=64)


class UnassignDriverRequest(BaseModel):
    notes: str | None = Field(None, max_length=500)


class DeliveryStatusUpdate(BaseModel):
    """Schema for a driver reporting fulfillment progress."""

    step: str
    location: str = Field(..., min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("step")
    @classmethod
    def validate_step(cls, v: str) -> str:
        if v not in DRIVER_STEPS:
            raise ValueError(f"Invalid step. Must be one of: {', '.join(DRIVER_STEPS)}")
        return v

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Location is required")
        return v


class CurrentLocationUpdate(BaseModel):
    """Schema for a driver reporting a live position."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str | None = Field(None, max_length=500)


class CancellationRequestCreate(BaseModel):
    """Schema for a customer requesting cancellation."""

    reason: str = Field(..., min_length=1, max_length=1000)


class CancellationReview(BaseModel):
    """Schema for reviewing a cancellation request."""

    action: ReviewAction
    notes: str | None = Field(None, max_length=1000)


class TrackingStepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step: str
    timestamp: datetime
    location: str | None
    notes: str | None
    actor_id: str | None


class CancellationRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    requested_by: str
    requested_at: datetime
    reason: str
    status: CancellationStatus
    reviewed_by: str | None
    review_notes: str | None
    reviewed_at: datetime | None
    prior_status: BookingStatus | None


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tracking_id: str
    customer_id: str
    customer_name: str
    vehicle_id: str | None
    driver_id: str | None
    status: BookingStatus
    version: int

    # Carried payload
    from_location: dict[str, Any]
    to_location: dict[str, Any]
    distance: float | None
    final_amount: float | None
    cargo_description: str | None
    current_location: dict[str, Any] | None

    tracking_steps: list[TrackingStepResponse]
    cancellation_request: CancellationRequestResponse | None

    # Timestamps
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None
    accepted_at: datetime | None
    delivered_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int


class AvailableTransitionsResponse(BaseModel):
    """Actions the caller may take on the booking right now."""

    booking_id: str
    status: BookingStatus
    version: int
    transitions: list[Transition]
