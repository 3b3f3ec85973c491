"""Pydantic schemas for API validation."""

from app.schemas.transport import (
    AssignDriverRequest,
    AvailableTransitionsResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    CancellationRequestCreate,
    CancellationReview,
    CurrentLocationUpdate,
    DeliveryStatusUpdate,
    LocationSchema,
    UnassignDriverRequest,
)

__all__ = [
    # Intake
    "LocationSchema",
    "BookingCreate",
    # Lifecycle actions
    "AssignDriverRequest",
    "UnassignDriverRequest",
    "DeliveryStatusUpdate",
    "CurrentLocationUpdate",
    "CancellationRequestCreate",
    "CancellationReview",
    # Responses
    "BookingResponse",
    "BookingListResponse",
    "AvailableTransitionsResponse",
]
