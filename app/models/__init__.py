"""Database models."""

from app.models.transport import BookingTrackingStep, TransportBooking

__all__ = [
    "TransportBooking",
    "BookingTrackingStep",
]
